"""
Tests for class membership reads and roster views.
"""
import pytest

from cosmicds.services.accounts import add_student_to_class
from cosmicds.services.rosters import (
    get_active_story_names,
    get_classes_for_educator,
    get_classes_for_student,
    get_roster_info,
    get_roster_info_for_story,
    get_students_for_class,
)
from cosmicds.services.stories import update_story_state


class TestMembership:
    @pytest.mark.asyncio
    async def test_classes_for_student_and_educator(self, make_student, make_educator, make_class, db):
        ada = await make_student()
        educator = await make_educator()
        c1 = await make_class(educator, name="Astro 101", students=[ada])
        c2 = await make_class(educator, name="Astro 102")

        assert [c.id for c in await get_classes_for_educator(db, educator.id)] == [c1.id, c2.id]
        assert [c.id for c in await get_classes_for_student(db, ada.id)] == [c1.id]

        await add_student_to_class(db, ada.id, c2.id)
        assert [c.id for c in await get_classes_for_student(db, ada.id)] == [c1.id, c2.id]

    @pytest.mark.asyncio
    async def test_students_for_class(self, make_student, make_educator, make_class, db):
        ada = await make_student("ada")
        bob = await make_student("bob")
        await make_student("eve")
        cls = await make_class(await make_educator(), students=[bob, ada])

        assert [s.id for s in await get_students_for_class(db, cls.id)] == [ada.id, bob.id]

    @pytest.mark.asyncio
    async def test_empty_class(self, make_educator, make_class, db):
        cls = await make_class(await make_educator())
        assert await get_students_for_class(db, cls.id) == []
        assert await get_roster_info_for_story(db, cls.id, "hubbles_law") == []


class TestRoster:
    @pytest.mark.asyncio
    async def test_roster_info_groups_by_active_story(self, make_student, make_educator, make_class, db):
        ada = await make_student("ada")
        bob = await make_student("bob")
        eve = await make_student("eve")
        cls = await make_class(await make_educator(), students=[ada, bob])
        await update_story_state(db, ada.id, "hubbles_law", {"stage": 2})
        await update_story_state(db, eve.id, "hubbles_law", {"stage": 5})

        assert await get_active_story_names(db, cls.id) == ["hubbles_law"]

        roster = await get_roster_info(db, cls.id)
        assert list(roster) == ["hubbles_law"]
        entries = roster["hubbles_law"]
        assert [e.student_id for e in entries] == [ada.id]
        assert entries[0].story_state == {"stage": 2}
        assert entries[0].student.username == "ada"
