"""
KSA Copilot Pack API Routes
===========================

Stateless pack analysis.

    GET  /api/packs                      - Registered packs and their input schemas
    POST /api/packs/{pack_id}/analyze    - Run a pack on extracted text + inputs
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from ..packs import PackEngine, PackInputError, UnknownPackError
from ..packs.registry import PACKS
from .models import AnalyzeRequest, PackInfoModel, PackListResponse, PackResultModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/packs", tags=["Packs"])


@router.get("", response_model=PackListResponse)
def list_packs():
    return PackListResponse(packs=[
        PackInfoModel(
            id=pack.id,
            title=pack.title,
            version=pack.version,
            description=pack.description,
            inputsSchema=pack.inputs_model.model_json_schema(),
        )
        for pack in PACKS.values()
    ])


@router.post("/{pack_id}/analyze", response_model=PackResultModel)
def analyze(pack_id: str, body: AnalyzeRequest, request: Request):
    """
    Run one pack.

    Citation lookup is best effort: with the KB down or unconfigured the
    checklist is returned without citations.
    """
    engine: PackEngine = request.app.state.engine

    try:
        result = engine.run(pack_id, body.text, body.inputs)
    except UnknownPackError:
        raise HTTPException(status_code=404, detail=f"Unknown pack: {pack_id}")
    except PackInputError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid pack inputs", "errors": e.errors})

    return PackResultModel.from_result(pack_id, result)
