from rest_framework import serializers


class PIBItemSerializer(serializers.Serializer):
    hs_code = serializers.CharField(allow_blank=True)
    goods_description = serializers.CharField(allow_blank=True)
    quantity = serializers.DecimalField(max_digits=18, decimal_places=4)
    unit = serializers.CharField(allow_blank=True)
    unit_price = serializers.DecimalField(max_digits=18, decimal_places=4)
    bm_rate = serializers.DecimalField(max_digits=7, decimal_places=4, min_value=0, default=0)
    ppn_rate = serializers.DecimalField(max_digits=7, decimal_places=4, min_value=0, required=False,
                                        allow_null=True, default=None)
    pph_rate = serializers.DecimalField(max_digits=7, decimal_places=4, min_value=0, default=0)


class PIBDutiesRequestSerializer(serializers.Serializer):
    items = PIBItemSerializer(many=True, allow_empty=False)
    fob_value = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0, default=0)
    freight_value = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0, default=0)
    insurance_value = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0, default=0)
    exchange_rate = serializers.DecimalField(max_digits=18, decimal_places=4, required=False, allow_null=True,
                                             default=None)

    def validate_exchange_rate(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError('Exchange rate must be a positive number')
        return value
