import json
import logging
from typing import List, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from seamless_wallet.api.deps import get_wallet_engine
from seamless_wallet.schemas.callback import CallbackAction, CallbackResponse, ResponseStatus
from seamless_wallet.services.dispatcher import WalletEngine

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/seamless",
    tags=["Seamless Wallet"]
)


class MalformedBody(ValueError):
    pass


def _stringify(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def read_callback_params(request: Request) -> List[Tuple[str, str]]:
    """
    Callback parameters in the order they were received: query string
    first, then a JSON object body on POST.
    """
    items = list(request.query_params.multi_items())
    if request.method != "POST":
        return items

    raw = await request.body()
    if not raw.strip():
        return items
    try:
        body = json.loads(raw)
    except ValueError:
        raise MalformedBody("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise MalformedBody("Request body must be a JSON object")

    items.extend((str(name), _stringify(value)) for name, value in body.items())
    return items


def _reply(response: CallbackResponse) -> JSONResponse:
    # provider outcomes travel in the body; the transport status is always 200
    return JSONResponse(status_code=200, content=response.to_body())


async def _handle(action: str, request: Request, engine: WalletEngine) -> JSONResponse:
    try:
        params = await read_callback_params(request)
    except MalformedBody as e:
        logger.warning(f"Malformed {action} callback from {request.client.host if request.client else '-'}: {e}")
        return _reply(CallbackResponse(status=ResponseStatus.BAD_REQUEST.value, msg=str(e)))

    response = await run_in_threadpool(engine.dispatch, action, params)
    return _reply(response)


@router.api_route("/callback/health", methods=["GET"])
async def callback_health():
    """Liveness probe for the provider's callback monitoring."""
    return {"status": "ok"}


@router.api_route("/callback", methods=["GET", "POST"])
async def unified_callback(request: Request, engine: WalletEngine = Depends(get_wallet_engine)):
    """Single callback URL; the operation is chosen by the ``action`` parameter."""
    action = request.query_params.get("action", "")
    return await _handle(action, request, engine)


@router.api_route("/callback/balance", methods=["GET", "POST"])
async def balance_callback(request: Request, engine: WalletEngine = Depends(get_wallet_engine)):
    return await _handle(CallbackAction.BALANCE.value, request, engine)


@router.api_route("/callback/debit", methods=["GET", "POST"])
async def debit_callback(request: Request, engine: WalletEngine = Depends(get_wallet_engine)):
    return await _handle(CallbackAction.DEBIT.value, request, engine)


@router.api_route("/callback/credit", methods=["GET", "POST"])
async def credit_callback(request: Request, engine: WalletEngine = Depends(get_wallet_engine)):
    return await _handle(CallbackAction.CREDIT.value, request, engine)


@router.api_route("/callback/rollback", methods=["GET", "POST"])
async def rollback_callback(request: Request, engine: WalletEngine = Depends(get_wallet_engine)):
    return await _handle(CallbackAction.ROLLBACK.value, request, engine)
