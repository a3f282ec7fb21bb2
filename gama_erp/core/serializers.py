from rest_framework import serializers


class TransitionCheckSerializer(serializers.Serializer):
    current = serializers.CharField(max_length=50)
    target = serializers.CharField(max_length=50)
