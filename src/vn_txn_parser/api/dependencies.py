from fastapi import HTTPException, Request

from vn_txn_parser.services.parsing import ParsingService


def get_service(request: Request) -> ParsingService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service
