import pytest
import datetime
from uuid import UUID
from pprint import pprint
from fastapi import HTTPException

from src.edumesh_backend.database import models as db_models
from src.edumesh_backend.database.db_enums import AttendanceStatusEnum
from src.edumesh_backend.services.school_service import SchoolService
from src.edumesh_backend.models import school as school_models

from tests.constants import (
    TEST_SCHOOL_ID,
    TEST_SCHOOL_CODE,
    TEST_TEACHER_ID,
    TEST_SUBJECT_ID,
    OTHER_SUBJECT_ID,
    OTHER_TEACHER_ID,
    TEST_CLASS_ID,
    TEST_STUDENT_ID,
    TEST_SIBLING_ID,
    TEST_ORPHAN_STUDENT_ID,
    TEST_UNRELATED_CLASS_ID,
)


@pytest.mark.anyio
class TestSchoolInfo:

    async def test_get_info(
        self,
        school_service: SchoolService,
        test_parent_orm: db_models.Users
    ):
        school = await school_service.get_school_info_for_api(test_parent_orm)
        assert school.id == TEST_SCHOOL_ID
        assert school.code == TEST_SCHOOL_CODE

    async def test_update_info(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        data = school_models.SchoolUpdate(address="1 Green Lane", website="https://greenfield.edu")
        school = await school_service.update_school_info_for_api(data, test_admin_orm)

        assert school.address == "1 Green Lane"
        assert school.name == "Greenfield High School"

    async def test_update_info_as_teacher(
        self,
        school_service: SchoolService,
        test_teacher_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await school_service.update_school_info_for_api(school_models.SchoolUpdate(address="x"), test_teacher_orm)
        assert e.value.status_code == 403

    async def test_update_info_without_fields(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await school_service.update_school_info_for_api(school_models.SchoolUpdate(), test_admin_orm)
        assert e.value.status_code == 400


@pytest.mark.anyio
class TestSchoolStats:

    async def test_stats(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        print("\n--- Testing school stats as ADMIN ---")
        stats = await school_service.get_school_stats_for_api(test_admin_orm)
        pprint(stats.model_dump())

        # the inactive teacher is not counted
        assert stats.total_teachers == 2
        assert stats.total_students == 4
        assert stats.total_parents == 3
        assert stats.total_classes == 2
        # the past-due homework is not active
        assert stats.active_homework == 2
        assert stats.upcoming_exams == 2

    async def test_stats_attendance_rate_this_month(
        self,
        db_session,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        """Two present, one absent today: 66.67%. The seeded 2024 sheet is outside this month."""
        today = datetime.date.today()
        statuses = {
            TEST_STUDENT_ID: AttendanceStatusEnum.PRESENT,
            TEST_SIBLING_ID: AttendanceStatusEnum.PRESENT,
            TEST_ORPHAN_STUDENT_ID: AttendanceStatusEnum.ABSENT,
        }
        db_session.add_all([
            db_models.Attendance(school_id=TEST_SCHOOL_ID, student_id=student_id, class_id=TEST_CLASS_ID,
                                 date=today, status=attendance_status.value)
            for student_id, attendance_status in statuses.items()
        ])
        await db_session.commit()

        stats = await school_service.get_school_stats_for_api(test_admin_orm)
        assert stats.attendance_rate == 66.67

    async def test_stats_as_parent_forbidden(
        self,
        school_service: SchoolService,
        test_parent_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await school_service.get_school_stats_for_api(test_parent_orm)
        assert e.value.status_code == 403


@pytest.mark.anyio
class TestSubjectsAndClasses:

    async def test_list_subjects_stays_in_school(
        self,
        school_service: SchoolService,
        test_student_orm: db_models.Users
    ):
        subjects = await school_service.get_subjects_for_api(test_student_orm)
        assert [s.id for s in subjects] == [TEST_SUBJECT_ID]
        assert OTHER_SUBJECT_ID not in {s.id for s in subjects}

    async def test_create_subject_uppercases_code(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        data = school_models.SubjectCreate(name="Physics", code="phy101")
        subject = await school_service.create_subject_for_api(data, test_admin_orm)

        assert subject.code == "PHY101"
        assert subject.color == "#3B82F6"

    async def test_create_subject_duplicate_code(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        """Codes are unique per school; 'math101' collides with the seeded MATH101."""
        with pytest.raises(HTTPException) as e:
            await school_service.create_subject_for_api(
                school_models.SubjectCreate(name="Maths Again", code="math101"), test_admin_orm
            )
        assert e.value.status_code == 409

    async def test_teacher_sees_own_classes(
        self,
        school_service: SchoolService,
        test_teacher_orm: db_models.Users
    ):
        classes = await school_service.get_classes_for_api(test_teacher_orm)
        assert [c.id for c in classes] == [TEST_CLASS_ID]

    async def test_admin_sees_all_classes(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        classes = await school_service.get_classes_for_api(test_admin_orm)
        assert [c.id for c in classes] == [TEST_CLASS_ID, TEST_UNRELATED_CLASS_ID]

    async def test_create_class(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        data = school_models.ClassCreate(
            name="11C", subject_id=TEST_SUBJECT_ID, teacher_id=TEST_TEACHER_ID, room="R12",
            day_of_week=3, start_time=datetime.time(10, 0), end_time=datetime.time(11, 0)
        )
        class_read = await school_service.create_class_for_api(data, test_admin_orm)

        assert class_read.name == "11C"
        assert class_read.teacher_id == TEST_TEACHER_ID
        assert class_read.is_active is True

    async def test_create_class_with_other_school_teacher(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        data = school_models.ClassCreate(name="11C", teacher_id=OTHER_TEACHER_ID)
        with pytest.raises(HTTPException) as e:
            await school_service.create_class_for_api(data, test_admin_orm)
        assert e.value.status_code == 404

    async def test_create_class_with_unknown_subject(
        self,
        school_service: SchoolService,
        test_admin_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await school_service.create_class_for_api(
                school_models.ClassCreate(name="11C", subject_id=UUID(int=0)), test_admin_orm
            )
        assert e.value.status_code == 404
