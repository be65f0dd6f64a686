from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: int


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


class ValidationErrorResponse(BaseModel):
    """검증 에러 응답 모델"""
    error: str = "validation_error"
    message: str
    validation_errors: List[ValidationError]
    status_code: int


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """예외를 딕셔너리로 변환"""
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class ValidationException(BaseCustomException):
    """입력 검증 실패 예외"""
    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="validation_error",
            message=message,
            details=details
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "validation_errors": [error.model_dump() for error in self.validation_errors],
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="authorization_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


class ConflictException(BaseCustomException):
    """리소스 충돌 예외"""
    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="resource_conflict",
            message=message,
            details=details
        )


class BusinessLogicException(BaseCustomException):
    """비즈니스 로직 예외"""
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error: str = "business_logic_error",
        status_code: int = status.HTTP_400_BAD_REQUEST
    ):
        super().__init__(
            status_code=status_code,
            error=error,
            message=message,
            details=details
        )


# =============================================================================
# 교환 요청 / 채팅 도메인 예외
# =============================================================================

class SwapRequestNotFoundException(ResourceNotFoundException):
    """교환 요청을 찾을 수 없음"""
    def __init__(self, swap_request_id: Optional[int] = None):
        super().__init__(
            "Swap request",
            details={"resource": "Swap request", "swap_request_id": swap_request_id}
        )


class SwapAccessDeniedException(AuthorizationException):
    """교환 요청 당사자가 아닌 사용자의 접근"""
    def __init__(self, swap_request_id: Optional[int] = None, user_id: Optional[int] = None):
        super().__init__(
            "Access denied: user is not a party to this swap request",
            details={"swap_request_id": swap_request_id, "user_id": user_id}
        )


class InvalidStatusTransitionException(BusinessLogicException):
    """허용되지 않은 상태 전이"""
    def __init__(
        self,
        current_status: str,
        attempted_status: str,
        swap_request_id: Optional[int] = None,
        message: Optional[str] = None,
        error: str = "invalid_status_transition",
        status_code: int = status.HTTP_400_BAD_REQUEST
    ):
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            message or f"Invalid status transition from {current_status} to {attempted_status}",
            details={
                "swap_request_id": swap_request_id,
                "current_status": current_status,
                "attempted_status": attempted_status
            },
            error=error,
            status_code=status_code
        )


class NotAuthorizedTransitionException(InvalidStatusTransitionException):
    """해당 역할이 요청할 수 없는 상태 전이"""
    def __init__(
        self,
        current_status: str,
        attempted_status: str,
        swap_request_id: Optional[int] = None,
        role: Optional[str] = None
    ):
        self.role = role
        super().__init__(
            current_status,
            attempted_status,
            swap_request_id,
            message=f"User not authorized to change status from {current_status} to {attempted_status}",
            error="not_authorized_transition",
            status_code=status.HTTP_403_FORBIDDEN
        )
        if role:
            self.details["role"] = role


class DuplicateSwapRequestException(ConflictException):
    """동일한 (sender, receiver, book) 교환 요청이 이미 존재"""
    def __init__(self, sender_id: int, receiver_id: int, book_id: int):
        super().__init__(
            "Swap request already exists for this book",
            details={"sender_id": sender_id, "receiver_id": receiver_id, "book_id": book_id}
        )


class IllegalSwapRequestException(BusinessLogicException):
    """잘못된 교환 요청"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, error="illegal_swap_request")


class BookNotOwnedByReceiverException(IllegalSwapRequestException):
    def __init__(self, book_id: int, receiver_id: int):
        super().__init__(
            "Requested book does not belong to the receiver",
            details={"book_id": book_id, "receiver_id": receiver_id}
        )


class OfferNotSwappableException(IllegalSwapRequestException):
    def __init__(self, field: str, offered_id: int, book_id: int):
        super().__init__(
            f"Offered {field} is not one of the swappable {field}s of the requested book",
            details={"field": field, "offered_id": offered_id, "book_id": book_id}
        )


class InvalidStatusException(BusinessLogicException):
    """알 수 없는 상태 코드"""
    def __init__(self, value: Optional[str]):
        super().__init__(
            f"Invalid swap status: {value}",
            details={"status": value},
            error="invalid_status"
        )


class EmptyMessageException(ValidationException):
    """텍스트와 이미지가 모두 비어있는 메시지"""
    def __init__(self):
        super().__init__(
            "Either message text or images must be provided",
            validation_errors=[
                ValidationError(field="message", message="Message cannot be empty")
            ]
        )


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details
    )


def create_validation_error_response(
    message: str,
    validation_errors: List[ValidationError],
    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY
) -> ValidationErrorResponse:
    """검증 에러 응답 생성"""
    return ValidationErrorResponse(
        message=message,
        validation_errors=validation_errors,
        status_code=status_code
    )


def user_not_found_error(user_id: Optional[int] = None):
    """사용자를 찾을 수 없음 에러"""
    details = {"user_id": user_id} if user_id else None
    return ResourceNotFoundException("User", details=details)


def book_not_found_error(book_id: Optional[int] = None):
    details = {"book_id": book_id} if book_id else None
    return ResourceNotFoundException("Book", details=details)


def genre_not_found_error(genre_id: Optional[int] = None):
    details = {"genre_id": genre_id} if genre_id else None
    return ResourceNotFoundException("Genre", details=details)


def missing_user_header_error():
    """X-User-Id 헤더 누락 에러"""
    return AuthenticationException("Missing or invalid X-User-Id header")
