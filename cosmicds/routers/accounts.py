from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..results import CreateClassResult
from ..schemas import (
    ClassRead,
    CreateClassRequest,
    EducatorRead,
    EducatorSignUp,
    LoginRead,
    LoginRequest,
    StudentRead,
    StudentSignUp,
)
from ..services.accounts import (
    LoginResponse,
    check_educator_login,
    check_student_login,
    create_class,
    sign_up_educator,
    sign_up_student,
    verify_educator,
    verify_student,
)
from ..services.identity import find_class_by_code, get_all_educators, get_all_students

router = APIRouter(tags=["accounts"])


def _login_payload(response: LoginResponse) -> LoginRead:
    return LoginRead(result=response.result.value, id=response.id, success=response.success)


@router.post("/student-sign-up")
async def student_sign_up(data: StudentSignUp, db: AsyncSession = Depends(get_db)):
    result = await sign_up_student(
        db,
        username=data.username,
        password=data.password,
        email=data.email,
        institution=data.institution,
        age=data.age,
        gender=data.gender,
        classroom_code=data.classroom_code,
    )
    return {
        "student_info": data.model_dump(exclude={"password"}),
        "status": result.value,
        "success": result.success(),
    }


@router.post("/educator-sign-up")
async def educator_sign_up(data: EducatorSignUp, db: AsyncSession = Depends(get_db)):
    result = await sign_up_educator(
        db,
        first_name=data.first_name,
        last_name=data.last_name,
        password=data.password,
        email=data.email,
        institution=data.institution,
        age=data.age,
        gender=data.gender,
    )
    return {
        "educator_info": data.model_dump(exclude={"password"}),
        "status": result.value,
        "success": result.success(),
    }


@router.put("/student-login", response_model=LoginRead)
async def student_login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return _login_payload(await check_student_login(db, data.email, data.password))


@router.put("/educator-login", response_model=LoginRead)
async def educator_login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return _login_payload(await check_educator_login(db, data.email, data.password))


@router.post("/verify-student/{verification_code}")
async def verify_student_route(verification_code: str, db: AsyncSession = Depends(get_db)):
    result = await verify_student(db, verification_code)
    return {"code": verification_code, "status": result.value, "success": result.success()}


@router.post("/verify-educator/{verification_code}")
async def verify_educator_route(verification_code: str, db: AsyncSession = Depends(get_db)):
    result = await verify_educator(db, verification_code)
    return {"code": verification_code, "status": result.value, "success": result.success()}


@router.post("/create-class")
async def create_class_route(data: CreateClassRequest, db: AsyncSession = Depends(get_db)):
    result, cls = await create_class(db, data.educator_id, data.name)
    return {
        "class": ClassRead.model_validate(cls).model_dump() if result is CreateClassResult.ok else None,
        "status": result.value,
        "success": result.success(),
    }


@router.get("/validate-classroom-code/{code}")
async def validate_classroom_code(code: str, db: AsyncSession = Depends(get_db)):
    cls = await find_class_by_code(db, code)
    return {"code": code, "valid": cls is not None}


@router.get("/students", response_model=list[StudentRead])
async def list_students(db: AsyncSession = Depends(get_db)):
    return await get_all_students(db)


@router.get("/educators", response_model=list[EducatorRead])
async def list_educators(db: AsyncSession = Depends(get_db)):
    return await get_all_educators(db)
