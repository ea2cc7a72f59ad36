'''
Static enums mirroring the ENUM types stored in the database.
'''
import enum


class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class UserRole(ListableEnum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"


class SubmissionStatusEnum(ListableEnum):
    SUBMITTED = "submitted"
    LATE = "late"
    GRADED = "graded"


class AttendanceStatusEnum(ListableEnum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class ExamStatusEnum(ListableEnum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FeeStatusEnum(ListableEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class MessageTypeEnum(ListableEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class NotificationTypeEnum(ListableEnum):
    HOMEWORK = "homework"
    EXAM = "exam"
    ATTENDANCE = "attendance"
    FEE = "fee"
    ANNOUNCEMENT = "announcement"
    MESSAGE = "message"


class OTPMethodEnum(ListableEnum):
    PHONE = "phone"
    EMAIL = "email"


class HomeworkStatusFilter(ListableEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
