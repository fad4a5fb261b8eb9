# deps/payouts.py
from fastapi import Request

from app.payouts.service import PayoutService


def get_payout_service(request: Request) -> PayoutService:
    return request.app.state.payout_service
