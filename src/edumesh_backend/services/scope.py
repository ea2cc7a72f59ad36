'''
Scope Filter: narrows every domain query to the rows the caller's role may see.

The whole role matrix lives in SCOPE_POLICY; services never branch on role
to decide visibility, they call `ScopeFilter.resolve()` and apply the result.
'''
import enum
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import Select, false, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.logger import log


class ScopedResource(str, enum.Enum):
    HOMEWORK = "homework"
    EXAM = "exam"
    ATTENDANCE = "attendance"
    FEE = "fee"


class ScopeRule(str, enum.Enum):
    SCHOOL = "school"                     # every row of the caller's school
    TEACHER_OWNED = "teacher_owned"       # rows owned by the caller's Teacher profile
    TEACHER_CLASSES = "teacher_classes"   # rows of the classes the caller teaches
    LINKED_STUDENTS = "linked_students"   # rows of the caller's linked students
    LINKED_CLASSES = "linked_classes"     # rows for the class names of the linked students


@dataclass(frozen=True)
class ScopeColumns:
    """The columns of a resource that scope rules can filter on."""
    school: Any
    teacher: Any = None
    student: Any = None
    class_id: Any = None
    class_name: Any = None


RESOURCE_COLUMNS: dict[ScopedResource, ScopeColumns] = {
    ScopedResource.HOMEWORK: ScopeColumns(
        school=db_models.Homework.school_id,
        teacher=db_models.Homework.teacher_id,
        class_name=db_models.Homework.class_name,
    ),
    ScopedResource.EXAM: ScopeColumns(
        school=db_models.Exams.school_id,
        teacher=db_models.Exams.teacher_id,
        class_name=db_models.Exams.class_name,
    ),
    ScopedResource.ATTENDANCE: ScopeColumns(
        school=db_models.Attendance.school_id,
        student=db_models.Attendance.student_id,
        class_id=db_models.Attendance.class_id,
    ),
    ScopedResource.FEE: ScopeColumns(
        school=db_models.Fees.school_id,
        student=db_models.Fees.student_id,
    ),
}

SCOPE_POLICY: dict[ScopedResource, dict[str, ScopeRule]] = {
    ScopedResource.HOMEWORK: {
        UserRole.ADMIN.value: ScopeRule.SCHOOL,
        UserRole.TEACHER.value: ScopeRule.TEACHER_OWNED,
        UserRole.PARENT.value: ScopeRule.LINKED_CLASSES,
        UserRole.STUDENT.value: ScopeRule.LINKED_CLASSES,
    },
    ScopedResource.EXAM: {
        UserRole.ADMIN.value: ScopeRule.SCHOOL,
        UserRole.TEACHER.value: ScopeRule.TEACHER_OWNED,
        UserRole.PARENT.value: ScopeRule.LINKED_CLASSES,
        UserRole.STUDENT.value: ScopeRule.LINKED_CLASSES,
    },
    ScopedResource.ATTENDANCE: {
        UserRole.ADMIN.value: ScopeRule.SCHOOL,
        UserRole.TEACHER.value: ScopeRule.TEACHER_CLASSES,
        UserRole.PARENT.value: ScopeRule.LINKED_STUDENTS,
        UserRole.STUDENT.value: ScopeRule.LINKED_STUDENTS,
    },
    ScopedResource.FEE: {
        UserRole.ADMIN.value: ScopeRule.SCHOOL,
        UserRole.TEACHER.value: ScopeRule.TEACHER_CLASSES,
        UserRole.PARENT.value: ScopeRule.LINKED_STUDENTS,
        UserRole.STUDENT.value: ScopeRule.LINKED_STUDENTS,
    },
}


@dataclass(frozen=True)
class LinkedStudent:
    id: UUID
    user_id: UUID
    name: str
    class_name: str
    parent_id: Optional[UUID]


@dataclass
class Scope:
    """
    A resolved scope. `is_empty` means the caller can see nothing;
    callers short-circuit on it and `apply()` still filters with false().
    """
    resource: ScopedResource
    rule: Optional[ScopeRule]
    predicates: list = field(default_factory=list)
    is_empty: bool = False

    def apply(self, stmt: Select) -> Select:
        if self.is_empty:
            return stmt.where(false())
        return stmt.where(*self.predicates)


class ScopeFilter:
    """
    Resolves SCOPE_POLICY entries into SQL predicates for one caller.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- Relationship Lookups ---

    async def get_teacher_id(self, current_user: db_models.Users) -> UUID | None:
        """Returns the Teachers.id of a teacher user, or None."""
        if current_user.role != UserRole.TEACHER.value:
            return None
        stmt = select(db_models.Teachers.id).filter(
            db_models.Teachers.user_id == current_user.id,
            db_models.Teachers.school_id == current_user.school_id
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_teacher_classes(self, teacher_id: UUID, school_id: UUID) -> list[db_models.Classes]:
        stmt = select(db_models.Classes).filter(
            db_models.Classes.teacher_id == teacher_id,
            db_models.Classes.school_id == school_id,
            db_models.Classes.is_active.is_(True)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    def _student_rows_stmt(self, school_id: UUID) -> Select:
        return select(
            db_models.Students.id,
            db_models.Students.user_id,
            db_models.Users.name,
            db_models.Students.class_name,
            db_models.Students.parent_id,
        ).join(
            db_models.Users, db_models.Users.id == db_models.Students.user_id
        ).filter(db_models.Students.school_id == school_id)

    async def _fetch_students(self, stmt: Select) -> list[LinkedStudent]:
        rows = (await self.db.execute(stmt)).all()
        return [LinkedStudent(id=r.id, user_id=r.user_id, name=r.name, class_name=r.class_name, parent_id=r.parent_id) for r in rows]

    async def get_linked_students(self, current_user: db_models.Users) -> list[LinkedStudent]:
        """
        Parent: the students whose parent_id is the caller.
        Student: the caller's own Student row.
        Everyone else: no linked students.
        """
        stmt = self._student_rows_stmt(current_user.school_id)
        if current_user.role == UserRole.PARENT.value:
            stmt = stmt.filter(db_models.Students.parent_id == current_user.id)
        elif current_user.role == UserRole.STUDENT.value:
            stmt = stmt.filter(db_models.Students.user_id == current_user.id)
        else:
            return []
        return await self._fetch_students(stmt)

    async def get_students_in_classes(self, school_id: UUID, class_names: list[str]) -> list[LinkedStudent]:
        if not class_names:
            return []
        stmt = self._student_rows_stmt(school_id).filter(db_models.Students.class_name.in_(class_names))
        return await self._fetch_students(stmt)

    async def get_visible_students(self, current_user: db_models.Users) -> list[LinkedStudent]:
        """
        The students whose per-student records (attendance, fees) the caller
        may see: the whole school for admins, the students of their classes
        for teachers, the linked students for parents and students.
        """
        if current_user.role == UserRole.ADMIN.value:
            return await self._fetch_students(self._student_rows_stmt(current_user.school_id))
        if current_user.role == UserRole.TEACHER.value:
            teacher_id = await self.get_teacher_id(current_user)
            if teacher_id is None:
                return []
            classes = await self.get_teacher_classes(teacher_id, current_user.school_id)
            return await self.get_students_in_classes(current_user.school_id, sorted({c.name for c in classes}))
        return await self.get_linked_students(current_user)

    # --- Scope Resolution ---

    def _empty(self, resource: ScopedResource, rule: Optional[ScopeRule], current_user: db_models.Users) -> Scope:
        log.info(f"Empty {resource.value} scope for user {current_user.id} (Role: {current_user.role}, rule: {rule.value if rule else None}).")
        return Scope(resource=resource, rule=rule, is_empty=True)

    async def resolve(self, resource: ScopedResource, current_user: db_models.Users) -> Scope:
        """
        Builds the predicates restricting `resource` for `current_user`.
        The school predicate is always present; an empty id list yields an
        empty scope, never an unfiltered one.
        """
        columns = RESOURCE_COLUMNS[resource]
        rule = SCOPE_POLICY[resource].get(current_user.role)
        if rule is None:
            log.warning(f"No {resource.value} scope rule for role '{current_user.role}'.")
            return self._empty(resource, None, current_user)

        predicates = [columns.school == current_user.school_id]

        if rule == ScopeRule.SCHOOL:
            pass

        elif rule == ScopeRule.TEACHER_OWNED:
            teacher_id = await self.get_teacher_id(current_user)
            if teacher_id is None:
                return self._empty(resource, rule, current_user)
            predicates.append(columns.teacher == teacher_id)

        elif rule == ScopeRule.TEACHER_CLASSES:
            teacher_id = await self.get_teacher_id(current_user)
            if teacher_id is None:
                return self._empty(resource, rule, current_user)
            classes = await self.get_teacher_classes(teacher_id, current_user.school_id)
            if not classes:
                return self._empty(resource, rule, current_user)
            if columns.class_id is not None:
                predicates.append(columns.class_id.in_([c.id for c in classes]))
            else:
                class_names = sorted({c.name for c in classes})
                predicates.append(columns.student.in_(
                    select(db_models.Students.id).filter(
                        db_models.Students.school_id == current_user.school_id,
                        db_models.Students.class_name.in_(class_names)
                    )
                ))

        elif rule == ScopeRule.LINKED_STUDENTS:
            student_ids = [s.id for s in await self.get_linked_students(current_user)]
            if not student_ids:
                return self._empty(resource, rule, current_user)
            predicates.append(columns.student.in_(student_ids))

        elif rule == ScopeRule.LINKED_CLASSES:
            class_names = sorted({s.class_name for s in await self.get_linked_students(current_user)})
            if not class_names:
                return self._empty(resource, rule, current_user)
            predicates.append(columns.class_name.in_(class_names))

        return Scope(resource=resource, rule=rule, predicates=predicates)
