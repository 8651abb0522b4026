"""FastAPI application exposing the reception desk REST API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .certificates import DEFAULT_LIMIT_HOURS, check_certificate_delivery
from .config import Settings, load_settings
from .exceptions import (
    AlreadyAttendedError,
    AuthorizationError,
    BackendUnavailableError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from .export import export_records_csv
from .models import AttendanceFilters, Permission, User
from .registry import Clock, utc_now
from .service import ReceptionDesk, build_reception_desk
from .users import require_admin, require_permission
from .validation import build_filters

ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    AlreadyAttendedError: 409,
    AuthorizationError: 403,
    BackendUnavailableError: 503,
}


class AttendanceIn(BaseModel):
    registration: str
    name: str
    position: str
    sector: str
    reason: str


class AttendanceUpdate(BaseModel):
    registration: Optional[str] = None
    name: Optional[str] = None
    position: Optional[str] = None
    sector: Optional[str] = None
    reason: Optional[str] = None


class SectorPhoneIn(BaseModel):
    sector: str
    phone_number: str


class SectorPhoneUpdate(BaseModel):
    sector: Optional[str] = None
    phone_number: Optional[str] = None


class PermissionIn(BaseModel):
    view: bool = True
    edit: bool = False
    delete: bool = False
    create: bool = False


class UserIn(BaseModel):
    username: str
    role: str = "user"
    permissions: PermissionIn = Field(default_factory=PermissionIn)


class PermissionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    view: Optional[bool] = None
    edit: Optional[bool] = None
    delete: Optional[bool] = None
    create: Optional[bool] = None


class UserUpdate(BaseModel):
    role: Optional[str] = None
    permissions: Optional[PermissionUpdate] = None


class CertificateCheckIn(BaseModel):
    issued_at: datetime
    delivered_at: datetime
    limit_hours: int = Field(default=DEFAULT_LIMIT_HOURS, gt=0)


def _status_for(exc: DomainError) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def create_app(
    settings: Optional[Settings] = None,
    *,
    desk: Optional[ReceptionDesk] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    if desk is None:
        settings = settings or load_settings()
        desk = build_reception_desk(settings, clock=clock)
    settings = desk.settings

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        desk.close()

    app = FastAPI(title="Reception Desk API", version="1.0.0", lifespan=lifespan)
    app.state.desk = desk
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    async def domain_error_handler(_: Request, exc: DomainError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> None:
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    def current_user(x_username: Optional[str] = Header(None, alias="X-Username")) -> Optional[User]:
        return desk.users.get_by_username(x_username)

    def filters_dependency(
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        sector: Optional[str] = None,
        status_filter: Optional[str] = Query(None, alias="status"),
        name: Optional[str] = None,
        registration: Optional[str] = None,
    ) -> AttendanceFilters:
        try:
            return build_filters(
                start_date=start_date,
                end_date=end_date,
                sector=sector,
                status=status_filter,
                name=name,
                registration=registration,
            )
        except ValidationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    api = [Depends(verify_api_key)]

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    # region Attendances
    @app.get("/api/attendances", dependencies=api)
    def list_attendances(filters: AttendanceFilters = Depends(filters_dependency)) -> dict[str, Any]:
        records = desk.registry.query(filters)
        return {"attendances": [record.to_dict() for record in records]}

    @app.get("/api/attendances/visible", dependencies=api)
    def list_visible_attendances(filters: AttendanceFilters = Depends(filters_dependency)) -> dict[str, Any]:
        records = desk.registry.query_visible(filters)
        return {"attendances": [record.to_dict() for record in records]}

    @app.get("/api/attendances/{attendance_id}", dependencies=api)
    def get_attendance(attendance_id: str) -> dict[str, Any]:
        return {"attendance": desk.registry.get(attendance_id).to_dict()}

    @app.post("/api/attendances", dependencies=api, status_code=status.HTTP_201_CREATED)
    def register_attendance(body: AttendanceIn, user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_permission(user, "create")
        record = desk.registry.register(
            registration=body.registration,
            name=body.name,
            position=body.position,
            sector=body.sector,
            reason=body.reason,
        )
        return {"attendance": record.to_dict()}

    @app.patch("/api/attendances/{attendance_id}", dependencies=api)
    def update_attendance(
        attendance_id: str,
        body: AttendanceUpdate,
        user: Optional[User] = Depends(current_user),
    ) -> dict[str, Any]:
        require_permission(user, "edit")
        fields = body.model_dump(exclude_unset=True)
        record = desk.registry.update(attendance_id, **fields)
        return {"attendance": record.to_dict()}

    @app.post("/api/attendances/{attendance_id}/attend", dependencies=api)
    def mark_attended(attendance_id: str, user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_permission(user, "edit")
        return {"attendance": desk.registry.mark_attended(attendance_id).to_dict()}

    @app.delete("/api/attendances/{attendance_id}", dependencies=api, status_code=status.HTTP_204_NO_CONTENT)
    def delete_attendance(attendance_id: str, user: Optional[User] = Depends(current_user)) -> Response:
        require_permission(user, "delete")
        desk.registry.remove(attendance_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/api/stats", dependencies=api)
    def dashboard_stats() -> dict[str, int]:
        return desk.registry.stats().to_dict()

    @app.get("/api/records/export", dependencies=api)
    def export_records(filters: AttendanceFilters = Depends(filters_dependency)) -> Response:
        content = export_records_csv(desk.registry.query(filters))
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="atendimentos.csv"'},
        )

    # endregion

    # region Directories
    @app.get("/api/employees/{registration}", dependencies=api)
    def find_employee(registration: str) -> dict[str, Any]:
        employee = desk.employees.find_by_registration(registration)
        if not employee:
            raise HTTPException(status_code=404, detail="employee not found")
        return {"registration": employee.registration, "name": employee.name, "position": employee.position}

    @app.get("/api/sector-phones", dependencies=api)
    def list_sector_phones(sector: Optional[str] = None) -> dict[str, Any]:
        return {"sector_phones": [phone.to_dict() for phone in desk.phones.list(sector)]}

    @app.post("/api/sector-phones", dependencies=api, status_code=status.HTTP_201_CREATED)
    def add_sector_phone(body: SectorPhoneIn, user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_admin(user)
        return {"sector_phone": desk.phones.add(body.sector, body.phone_number).to_dict()}

    @app.patch("/api/sector-phones/{phone_id}", dependencies=api)
    def update_sector_phone(
        phone_id: int,
        body: SectorPhoneUpdate,
        user: Optional[User] = Depends(current_user),
    ) -> dict[str, Any]:
        require_admin(user)
        phone = desk.phones.update(phone_id, sector=body.sector, phone_number=body.phone_number)
        return {"sector_phone": phone.to_dict()}

    @app.delete("/api/sector-phones/{phone_id}", dependencies=api, status_code=status.HTTP_204_NO_CONTENT)
    def remove_sector_phone(phone_id: int, user: Optional[User] = Depends(current_user)) -> Response:
        require_admin(user)
        desk.phones.remove(phone_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # endregion

    # region Users
    @app.get("/api/users", dependencies=api)
    def list_users(user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_admin(user)
        return {"users": [account.to_dict() for account in desk.users.list_users()]}

    @app.post("/api/users", dependencies=api, status_code=status.HTTP_201_CREATED)
    def create_user(body: UserIn, user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_admin(user)
        account = desk.users.create_user(
            body.username,
            role=body.role,
            permissions=Permission(**body.permissions.model_dump()),
        )
        return {"user": account.to_dict()}

    @app.patch("/api/users/{user_id}", dependencies=api)
    def update_user(user_id: int, body: UserUpdate, user: Optional[User] = Depends(current_user)) -> dict[str, Any]:
        require_admin(user)
        account = desk.users.get_user(user_id)
        if body.role is not None:
            account = desk.users.update_role(user_id, body.role)
        if body.permissions is not None:
            flags = body.permissions.model_dump(exclude_unset=True, exclude_none=True)
            account = desk.users.update_permissions(user_id, **flags)
        return {"user": account.to_dict()}

    @app.delete("/api/users/{user_id}", dependencies=api, status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: int, user: Optional[User] = Depends(current_user)) -> Response:
        require_admin(user)
        desk.users.delete_user(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # endregion

    @app.post("/api/certificates/check", dependencies=api)
    def check_certificate(body: CertificateCheckIn) -> dict[str, Any]:
        result = check_certificate_delivery(body.issued_at, body.delivered_at, body.limit_hours)
        return {
            "elapsed_hours": result.elapsed_hours,
            "elapsed_minutes": result.elapsed_minutes,
            "within_limit": result.within_limit,
            "limit_hours": result.limit_hours,
            "message": result.describe(),
        }

    return app


__all__ = ["create_app"]
