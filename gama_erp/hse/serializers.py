from rest_framework import serializers

from .utils import CONSEQUENCES, LIKELIHOODS


class RiskLevelRequestSerializer(serializers.Serializer):
    likelihood = serializers.ChoiceField(choices=LIKELIHOODS)
    consequence = serializers.ChoiceField(choices=CONSEQUENCES)
