from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKeyConstraint, Index, Integer, JSON, Numeric, PrimaryKeyConstraint, String, Text, Time, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid

from .db_enums import (
    UserRole,
    SubmissionStatusEnum,
    AttendanceStatusEnum,
    ExamStatusEnum,
    FeeStatusEnum,
    MessageTypeEnum,
    NotificationTypeEnum,
)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# JSONB on postgres, plain JSON elsewhere (the test-suite runs on sqlite)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


class Base(DeclarativeBase):
    pass


class Schools(Base):
    __tablename__ = 'schools'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='schools_pkey'),
        UniqueConstraint('code', name='schools_code_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255))
    code: Mapped[str] = mapped_column(String(50))
    region: Mapped[Optional[str]] = mapped_column(String(100))
    admin_email: Mapped[Optional[str]] = mapped_column(String(255))
    address: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    website: Mapped[Optional[str]] = mapped_column(String(255))
    logo_url: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)


class Users(Base):
    __tablename__ = 'users'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='users_school_id_fkey'),
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('email', name='users_email_key'),
        UniqueConstraint('phone', name='users_phone_key'),
        Index('idx_users_school_role', 'school_id', 'role'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(Enum(*UserRole.get_all_names(), name='user_role'))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)


class Teachers(Base):
    __tablename__ = 'teachers'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='teachers_user_id_fkey'),
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='teachers_school_id_fkey'),
        PrimaryKeyConstraint('id', name='teachers_pkey'),
        UniqueConstraint('user_id', name='teachers_user_id_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    employee_id: Mapped[Optional[str]] = mapped_column(String(50))
    subjects: Mapped[list] = mapped_column(JSONType, default=list)
    qualification: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    user: Mapped['Users'] = relationship('Users')


class Students(Base):
    __tablename__ = 'students'
    __table_args__ = (
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='students_user_id_fkey'),
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='students_school_id_fkey'),
        ForeignKeyConstraint(['parent_id'], ['users.id'], ondelete='SET NULL', name='students_parent_id_fkey'),
        PrimaryKeyConstraint('id', name='students_pkey'),
        UniqueConstraint('user_id', name='students_user_id_key'),
        Index('idx_students_school_class', 'school_id', 'class_name'),
        Index('idx_students_parent', 'parent_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    class_name: Mapped[str] = mapped_column(String(50))
    roll_number: Mapped[Optional[str]] = mapped_column(String(20))
    admission_number: Mapped[Optional[str]] = mapped_column(String(50))
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)

    user: Mapped['Users'] = relationship('Users', foreign_keys=[user_id])


class Subjects(Base):
    __tablename__ = 'subjects'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='subjects_school_id_fkey'),
        PrimaryKeyConstraint('id', name='subjects_pkey'),
        UniqueConstraint('school_id', 'code', name='subjects_school_id_code_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(100))
    code: Mapped[str] = mapped_column(String(20))
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(7), default='#3B82F6')
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)


class Classes(Base):
    __tablename__ = 'classes'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='classes_school_id_fkey'),
        ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='SET NULL', name='classes_subject_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='classes_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='classes_pkey'),
        Index('idx_classes_teacher', 'teacher_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(50))
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    room: Mapped[Optional[str]] = mapped_column(String(50))
    day_of_week: Mapped[Optional[int]] = mapped_column(Integer)
    start_time: Mapped[Optional[datetime.time]] = mapped_column(Time)
    end_time: Mapped[Optional[datetime.time]] = mapped_column(Time)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)


class Homework(Base):
    __tablename__ = 'homework'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='homework_school_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='CASCADE', name='homework_teacher_id_fkey'),
        ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE', name='homework_subject_id_fkey'),
        PrimaryKeyConstraint('id', name='homework_pkey'),
        Index('idx_homework_school_class', 'school_id', 'class_name'),
        Index('idx_homework_due_date', 'due_date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    subject_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    class_name: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    due_date: Mapped[datetime.date] = mapped_column(Date)
    max_marks: Mapped[int] = mapped_column(Integer, default=0)
    attachments: Mapped[list] = mapped_column(JSONType, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)

    homework_submissions: Mapped[list['HomeworkSubmissions']] = relationship('HomeworkSubmissions', back_populates='homework')


class HomeworkSubmissions(Base):
    __tablename__ = 'homework_submissions'
    __table_args__ = (
        ForeignKeyConstraint(['homework_id'], ['homework.id'], ondelete='CASCADE', name='homework_submissions_homework_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='homework_submissions_student_id_fkey'),
        PrimaryKeyConstraint('id', name='homework_submissions_pkey'),
        UniqueConstraint('homework_id', 'student_id', name='homework_submissions_homework_id_student_id_key'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    homework_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    attachments: Mapped[list] = mapped_column(JSONType, default=list)
    status: Mapped[str] = mapped_column(Enum(*SubmissionStatusEnum.get_all_names(), name='submission_status_enum'), default=SubmissionStatusEnum.SUBMITTED.value)
    marks_obtained: Mapped[Optional[int]] = mapped_column(Integer)
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    submitted_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    graded_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))

    homework: Mapped['Homework'] = relationship('Homework', back_populates='homework_submissions')


class Attendance(Base):
    __tablename__ = 'attendance'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='attendance_school_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='attendance_student_id_fkey'),
        ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE', name='attendance_class_id_fkey'),
        ForeignKeyConstraint(['marked_by'], ['users.id'], ondelete='SET NULL', name='attendance_marked_by_fkey'),
        PrimaryKeyConstraint('id', name='attendance_pkey'),
        UniqueConstraint('student_id', 'class_id', 'date', name='attendance_student_id_class_id_date_key'),
        Index('idx_attendance_class_date', 'class_id', 'date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    date: Mapped[datetime.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Enum(*AttendanceStatusEnum.get_all_names(), name='attendance_status_enum'))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    marked_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)


class Exams(Base):
    __tablename__ = 'exams'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='exams_school_id_fkey'),
        ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE', name='exams_subject_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL', name='exams_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='exams_pkey'),
        Index('idx_exams_school_class', 'school_id', 'class_name'),
        Index('idx_exams_date', 'exam_date'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    subject_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    class_name: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255))
    exam_date: Mapped[datetime.date] = mapped_column(Date)
    start_time: Mapped[datetime.time] = mapped_column(Time)
    end_time: Mapped[datetime.time] = mapped_column(Time)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    max_marks: Mapped[int] = mapped_column(Integer, default=100)
    instructions: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Enum(*ExamStatusEnum.get_all_names(), name='exam_status_enum'), default=ExamStatusEnum.UPCOMING.value)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)


class Fees(Base):
    __tablename__ = 'fees'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='fees_school_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='fees_student_id_fkey'),
        ForeignKeyConstraint(['paid_by'], ['users.id'], ondelete='SET NULL', name='fees_paid_by_fkey'),
        PrimaryKeyConstraint('id', name='fees_pkey'),
        Index('idx_fees_student_status', 'student_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[decimal.Decimal] = mapped_column(Numeric(10, 2))
    due_date: Mapped[datetime.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Enum(*FeeStatusEnum.get_all_names(), name='fee_status_enum'), default=FeeStatusEnum.PENDING.value)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255))
    paid_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    paid_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow, onupdate=utcnow)


class Messages(Base):
    __tablename__ = 'messages'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='messages_school_id_fkey'),
        ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE', name='messages_sender_id_fkey'),
        ForeignKeyConstraint(['receiver_id'], ['users.id'], ondelete='CASCADE', name='messages_receiver_id_fkey'),
        PrimaryKeyConstraint('id', name='messages_pkey'),
        Index('idx_messages_participants', 'sender_id', 'receiver_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    receiver_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    content: Mapped[str] = mapped_column(Text)
    message_type: Mapped[str] = mapped_column(Enum(*MessageTypeEnum.get_all_names(), name='message_type_enum'), default=MessageTypeEnum.TEXT.value)
    attachments: Mapped[list] = mapped_column(JSONType, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)


class Notifications(Base):
    __tablename__ = 'notifications'
    __table_args__ = (
        ForeignKeyConstraint(['school_id'], ['schools.id'], ondelete='CASCADE', name='notifications_school_id_fkey'),
        ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE', name='notifications_user_id_fkey'),
        PrimaryKeyConstraint('id', name='notifications_pkey'),
        Index('idx_notifications_user_read', 'user_id', 'is_read'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(Enum(*NotificationTypeEnum.get_all_names(), name='notification_type_enum'))
    data: Mapped[dict] = mapped_column(JSONType, default=dict)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(True), default=utcnow)
