'''
User lookups, profiles and admin-side account management.
'''
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends, HTTPException, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, OTPMethodEnum
from ..common.logger import log
from ..models import user as user_models
from .permissions import authorize_roles


class UserService:
    """
    Service for user-related database operations: lookups, profiles,
    admin management and the creation of student/teacher accounts.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- Lookups ---

    async def get_user_by_id(self, user_id: UUID) -> db_models.Users | None:
        log.info(f"Fetching user by ID: {user_id}")
        try:
            return await self.db.get(db_models.Users, user_id)
        except Exception as e:
            log.error(f"Database error fetching user by ID {user_id}: {e}", exc_info=True)
            raise

    async def get_user_by_email(self, email: str) -> db_models.Users | None:
        stmt = select(db_models.Users).filter(db_models.Users.email == email.lower())
        return (await self.db.execute(stmt)).scalars().first()

    async def get_user_by_contact(self, contact: str, method: OTPMethodEnum) -> db_models.Users | None:
        """Finds a user by the contact an OTP was sent to."""
        if method == OTPMethodEnum.EMAIL:
            return await self.get_user_by_email(contact)
        stmt = select(db_models.Users).filter(db_models.Users.phone == contact)
        return (await self.db.execute(stmt)).scalars().first()

    async def get_school_user(self, user_id: UUID, school_id: UUID) -> db_models.Users | None:
        """A user of the given school, or None (other tenants are invisible)."""
        stmt = select(db_models.Users).filter(
            db_models.Users.id == user_id,
            db_models.Users.school_id == school_id
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def get_teacher_profile(self, teacher_id: UUID, school_id: UUID) -> db_models.Teachers | None:
        stmt = select(db_models.Teachers).filter(
            db_models.Teachers.id == teacher_id,
            db_models.Teachers.school_id == school_id
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def get_student_profile_by_user(self, user_id: UUID) -> db_models.Students | None:
        stmt = select(db_models.Students).filter(db_models.Students.user_id == user_id)
        return (await self.db.execute(stmt)).scalars().first()

    async def contact_in_use(self, email: Optional[str], phone: Optional[str]) -> bool:
        conditions = []
        if email:
            conditions.append(db_models.Users.email == email.lower())
        if phone:
            conditions.append(db_models.Users.phone == phone)
        if not conditions:
            return False
        stmt = select(db_models.Users.id).filter(or_(*conditions)).limit(1)
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    # --- Internal Creation Helpers (no commit) ---

    def add_user(self, school_id: UUID, name: str, email: str, role: UserRole, phone: Optional[str] = None) -> db_models.Users:
        user = db_models.Users(
            school_id=school_id,
            name=name,
            email=email.lower(),
            phone=phone,
            role=role.value,
        )
        self.db.add(user)
        return user

    async def add_student(self, school_id: UUID, user: db_models.Users, class_name: str,
                          roll_number: Optional[str] = None, admission_number: Optional[str] = None,
                          parent_id: Optional[UUID] = None) -> db_models.Students:
        await self.db.flush() # user.id must exist before the profile references it
        student = db_models.Students(
            user_id=user.id,
            school_id=school_id,
            class_name=class_name,
            roll_number=roll_number,
            admission_number=admission_number,
            parent_id=parent_id,
        )
        self.db.add(student)
        await self.db.flush()
        return student

    async def add_teacher(self, school_id: UUID, user: db_models.Users, employee_id: Optional[str] = None,
                          subjects: Optional[list[str]] = None, qualification: Optional[str] = None) -> db_models.Teachers:
        await self.db.flush()
        teacher = db_models.Teachers(
            user_id=user.id,
            school_id=school_id,
            employee_id=employee_id,
            subjects=subjects or [],
            qualification=qualification,
        )
        self.db.add(teacher)
        await self.db.flush()
        return teacher

    async def _resolve_parent(
        self,
        data: user_models.StudentCreate,
        school_id: UUID,
        created_parents: dict[str, db_models.Users]
    ) -> db_models.Users | None:
        """
        Returns the parent user for a student payload: an existing parent
        by id, an existing parent by e-mail, or a new parent account.
        Raises ValueError with a row-level message on conflicts.
        """
        if data.parent_id:
            parent = await self.get_school_user(data.parent_id, school_id)
            if not parent or parent.role != UserRole.PARENT.value:
                raise ValueError("Parent not found")
            return parent

        if not data.parent_email:
            return None

        parent_email = data.parent_email.lower()
        if parent_email == data.email.lower():
            raise ValueError("Parent email must differ from the student's email")
        if parent_email in created_parents:
            return created_parents[parent_email]

        existing = await self.get_user_by_email(parent_email)
        if existing:
            if existing.role != UserRole.PARENT.value or existing.school_id != school_id:
                raise ValueError(f"{parent_email} belongs to a user who is not a parent in this school")
            return existing

        if data.parent_phone and data.parent_phone == data.phone:
            raise ValueError("Parent phone must differ from the student's phone")
        if data.parent_phone and await self.contact_in_use(None, data.parent_phone):
            raise ValueError(f"Phone {data.parent_phone} is already in use")

        parent = self.add_user(
            school_id, data.parent_name or parent_email.split("@")[0], parent_email, UserRole.PARENT, data.parent_phone
        )
        await self.db.flush()
        created_parents[parent_email] = parent
        log.info(f"Created parent account {parent.id} for {parent_email}.")
        return parent

    async def _create_student(self, data: user_models.StudentCreate, school_id: UUID,
                              created_parents: dict[str, db_models.Users]) -> user_models.StudentRead:
        if await self.contact_in_use(data.email, data.phone):
            raise ValueError("User with this email or phone already exists")
        parent = await self._resolve_parent(data, school_id, created_parents)
        user = self.add_user(school_id, data.name, data.email, UserRole.STUDENT, data.phone)
        student = await self.add_student(
            school_id, user, data.class_name, data.roll_number, data.admission_number, parent.id if parent else None
        )
        return user_models.StudentRead(
            id=student.id, user_id=user.id, school_id=school_id, name=user.name, email=user.email,
            class_name=student.class_name, roll_number=student.roll_number,
            admission_number=student.admission_number, parent_id=student.parent_id,
        )

    async def _create_teacher(self, data: user_models.TeacherCreate, school_id: UUID) -> user_models.TeacherRead:
        if await self.contact_in_use(data.email, data.phone):
            raise ValueError("User with this email or phone already exists")
        user = self.add_user(school_id, data.name, data.email, UserRole.TEACHER, data.phone)
        teacher = await self.add_teacher(school_id, user, data.employee_id, data.subjects, data.qualification)
        return user_models.TeacherRead(
            id=teacher.id, user_id=user.id, school_id=school_id, name=user.name, email=user.email,
            employee_id=teacher.employee_id, subjects=teacher.subjects, qualification=teacher.qualification,
        )

    # --- Public Methods (API-Facing) ---

    async def get_profile_for_api(self, current_user: db_models.Users) -> user_models.ProfileRead:
        school = await self.db.get(db_models.Schools, current_user.school_id)
        profile = user_models.ProfileRead.model_validate(current_user)
        if school:
            profile.school_name = school.name
            profile.school_code = school.code
        return profile

    async def update_profile_for_api(self, data: user_models.ProfileUpdate, current_user: db_models.Users) -> user_models.UserRead:
        log.info(f"User {current_user.id} updating profile.")
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

        new_phone = update_data.get("phone")
        if new_phone and new_phone != current_user.phone and await self.contact_in_use(None, new_phone):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Phone number already in use")

        for key, value in update_data.items():
            setattr(current_user, key, value)
        await self.db.commit()
        return user_models.UserRead.model_validate(current_user)

    async def list_users_for_api(
        self,
        current_user: db_models.Users,
        role: Optional[UserRole] = None,
        search: Optional[str] = None
    ) -> list[user_models.UserRead]:
        authorize_roles(current_user, [UserRole.ADMIN, UserRole.TEACHER])
        stmt = select(db_models.Users).filter(db_models.Users.school_id == current_user.school_id)
        if role:
            stmt = stmt.filter(db_models.Users.role == role.value)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.filter(or_(db_models.Users.name.ilike(pattern), db_models.Users.email.ilike(pattern)))
        stmt = stmt.order_by(db_models.Users.name)
        result = await self.db.execute(stmt)
        return [user_models.UserRead.model_validate(u) for u in result.scalars().all()]

    async def toggle_user_status_for_api(self, user_id: UUID, current_user: db_models.Users) -> user_models.UserRead:
        """Flips is_active on a user of the admin's school (soft deactivation)."""
        authorize_roles(current_user, [UserRole.ADMIN])
        if user_id == current_user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

        user = await self.get_school_user(user_id, current_user.school_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        user.is_active = not user.is_active
        await self.db.commit()
        log.info(f"Admin {current_user.id} set user {user.id} is_active={user.is_active}.")
        return user_models.UserRead.model_validate(user)

    async def create_student_for_api(self, data: user_models.StudentCreate, current_user: db_models.Users) -> user_models.StudentRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        try:
            student = await self._create_student(data, current_user.school_id, {})
        except ValueError as e:
            await self.db.rollback()
            detail = str(e)
            code = status.HTTP_404_NOT_FOUND if detail == "Parent not found" else status.HTTP_409_CONFLICT
            raise HTTPException(status_code=code, detail=detail)
        await self.db.commit()
        log.info(f"Admin {current_user.id} created student {student.id}.")
        return student

    async def create_teacher_for_api(self, data: user_models.TeacherCreate, current_user: db_models.Users) -> user_models.TeacherRead:
        authorize_roles(current_user, [UserRole.ADMIN])
        try:
            teacher = await self._create_teacher(data, current_user.school_id)
        except ValueError as e:
            await self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
        await self.db.commit()
        log.info(f"Admin {current_user.id} created teacher {teacher.id}.")
        return teacher

    # --- Bulk Upload ---

    @staticmethod
    def _duplicate_rows(emails: list[str]) -> set[int]:
        seen, duplicates = set(), set()
        for index, email in enumerate(emails):
            if email in seen:
                duplicates.add(index)
            seen.add(email)
        return duplicates

    async def _create_row(self, index: int, create, created_parents: dict[str, db_models.Users] | None = None) -> user_models.BulkRowResult:
        """
        Runs one bulk row inside a savepoint. A failing row is rolled back
        on its own and reported; earlier rows stay in the transaction.
        """
        known_parents = set(created_parents or ())
        try:
            async with self.db.begin_nested():
                created = await create()
        except (ValueError, IntegrityError) as e:
            if created_parents is not None:
                for email in set(created_parents) - known_parents:
                    del created_parents[email]
            if isinstance(e, IntegrityError):
                log.warning(f"Bulk row {index} hit a constraint: {e.orig}")
                message = "User with this email or phone already exists"
            else:
                message = str(e)
            return user_models.BulkRowResult(row=index, success=False, message=message)
        return user_models.BulkRowResult(row=index, success=True, id=created.id)

    async def bulk_create_students_for_api(self, data: user_models.BulkStudentsRequest, current_user: db_models.Users) -> user_models.BulkUploadResult:
        """
        Creates every valid row; invalid rows are reported and skipped.
        Parents created earlier in the same upload are reused by e-mail.
        """
        authorize_roles(current_user, [UserRole.ADMIN])
        log.info(f"Admin {current_user.id} bulk uploading {len(data.students)} student(s).")

        duplicates = self._duplicate_rows([row.email.lower() for row in data.students])
        created_parents: dict[str, db_models.Users] = {}
        results = []
        try:
            for index, row in enumerate(data.students, start=1):
                if index - 1 in duplicates:
                    results.append(user_models.BulkRowResult(row=index, success=False, message="Duplicate email in upload"))
                    continue
                results.append(await self._create_row(
                    index,
                    lambda row=row: self._create_student(row, current_user.school_id, created_parents),
                    created_parents,
                ))
            await self.db.commit()
        except Exception as e:
            log.error(f"Bulk student upload failed for school {current_user.school_id}: {e}", exc_info=True)
            raise

        created = sum(1 for r in results if r.success)
        return user_models.BulkUploadResult(created=created, failed=len(results) - created, results=results)

    async def bulk_create_teachers_for_api(self, data: user_models.BulkTeachersRequest, current_user: db_models.Users) -> user_models.BulkUploadResult:
        authorize_roles(current_user, [UserRole.ADMIN])
        log.info(f"Admin {current_user.id} bulk uploading {len(data.teachers)} teacher(s).")

        duplicates = self._duplicate_rows([row.email.lower() for row in data.teachers])
        results = []
        try:
            for index, row in enumerate(data.teachers, start=1):
                if index - 1 in duplicates:
                    results.append(user_models.BulkRowResult(row=index, success=False, message="Duplicate email in upload"))
                    continue
                results.append(await self._create_row(
                    index, lambda row=row: self._create_teacher(row, current_user.school_id)
                ))
            await self.db.commit()
        except Exception as e:
            log.error(f"Bulk teacher upload failed for school {current_user.school_id}: {e}", exc_info=True)
            raise

        created = sum(1 for r in results if r.success)
        return user_models.BulkUploadResult(created=created, failed=len(results) - created, results=results)
