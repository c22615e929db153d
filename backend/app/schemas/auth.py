from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    must_change_password: bool = False


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    clinic_name: str = Field(min_length=1, max_length=200)
    clinic_address: str = ""
    clinic_phone: str = ""


class RegisterResponse(BaseModel):
    message: str
    user_id: int
    clinic_id: int


class ChangePasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=72)
    old_password: str | None = None


class ChangePasswordResponse(BaseModel):
    message: str
