from fastapi import APIRouter, Depends, Request

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor
from medicare.rate_limit import limiter
from medicare.repositories import Store
from medicare.schemas import (
    AuthEnvelope,
    DoctorOut,
    DoctorProfileUpdate,
    Envelope,
    LoginIn,
    PasswordChange,
    ProfileUpdate,
    RegisterIn,
    Token,
    TokenEnvelope,
    UserOut,
)
from medicare.security import get_current_actor, require_roles
from medicare.services import auth_service
from medicare.utils.responses import ok

router = APIRouter(prefix="/api/auth", tags=["auth"])
account_router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    dependencies=[Depends(require_roles([Role.PATIENT, Role.ADMIN]))],
)

doctor_router = APIRouter(prefix="/api/doctor/auth", tags=["doctor-auth"])
doctor_account_router = APIRouter(
    prefix="/api/doctor/auth",
    tags=["doctor-auth"],
    dependencies=[Depends(require_roles([Role.DOCTOR]))],
)


def _user_out(user) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)


def _doctor_out(doctor) -> DoctorOut:
    return DoctorOut.model_validate(doctor, from_attributes=True)


@router.post("/register", status_code=201, response_model=AuthEnvelope[UserOut])
@limiter.limit("5/minute")
async def route_register(request: Request, payload: RegisterIn, store: Store = Depends(get_store)):
    """Patient self-registration. Rate limit: 5 requests per minute per IP."""
    token, user = await auth_service.register_patient(
        store,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        mobile=payload.mobile,
    )
    return ok(_user_out(user), token=Token(access_token=token))


@router.post("/login", response_model=AuthEnvelope[UserOut])
@limiter.limit("10/minute")
async def route_login(request: Request, payload: LoginIn, store: Store = Depends(get_store)):
    """Rate limit: 10 requests per minute per IP."""
    token, user = await auth_service.login_patient(
        store, email=payload.email, password=payload.password
    )
    return ok(_user_out(user), token=Token(access_token=token))


@account_router.get("/me", response_model=Envelope[UserOut])
async def route_me(actor: Actor = Depends(get_current_actor), store: Store = Depends(get_store)):
    return ok(_user_out(await auth_service.current_user(store, actor)))


@account_router.put("/profile", response_model=Envelope[UserOut])
async def route_update_profile(
    payload: ProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    user = await auth_service.update_profile(
        store, actor, name=payload.name, mobile=payload.mobile, dob=payload.dob
    )
    return ok(_user_out(user), message="Profile updated")


# -------------------- Doctor --------------------


@doctor_router.post("/login", response_model=AuthEnvelope[DoctorOut])
@limiter.limit("10/minute")
async def route_doctor_login(request: Request, payload: LoginIn, store: Store = Depends(get_store)):
    token, doctor = await auth_service.login_doctor(
        store, email=payload.email, password=payload.password
    )
    return ok(_doctor_out(doctor), token=Token(access_token=token))


@doctor_account_router.get("/me", response_model=Envelope[DoctorOut])
async def route_doctor_me(
    actor: Actor = Depends(get_current_actor), store: Store = Depends(get_store)
):
    return ok(_doctor_out(await auth_service.current_doctor(store, actor)))


@doctor_account_router.put("/profile", response_model=Envelope[DoctorOut])
async def route_update_doctor_profile(
    payload: DoctorProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    doctor = await auth_service.update_doctor_profile(
        store, actor, mobile=payload.mobile, about=payload.about, fees=payload.fees
    )
    return ok(_doctor_out(doctor), message="Profile updated successfully")


@doctor_account_router.put("/password", response_model=TokenEnvelope)
async def route_change_doctor_password(
    payload: PasswordChange,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    token = await auth_service.change_doctor_password(
        store,
        actor,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return ok(message="Password changed successfully", token=Token(access_token=token))
