from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drivers.services import minimum_wallet_balance
from drivers.views import require_driver
from wallet.serializers import TransactionSerializer
from wallet.services import get_balance


class WalletBalanceView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        balance = get_balance(profile.id)
        threshold = minimum_wallet_balance()
        return Response({
            "balance": str(balance),
            "minimum_balance": str(threshold),
            "can_go_online": profile.special or balance >= threshold,
        })


class WalletTransactionsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        transactions = profile.transactions.all()[:100]
        return Response(TransactionSerializer(transactions, many=True).data)
