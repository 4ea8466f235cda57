"""
End-to-end tests through the FastAPI routes.
"""
import pytest
from sqlalchemy import select

from cosmicds.models import Student

pytestmark = pytest.mark.api


async def _verification_code(db, email):
    stmt = select(Student.verification_code).where(Student.email == email)
    return (await db.execute(stmt)).scalar_one()


class TestAccountRoutes:
    @pytest.mark.asyncio
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert "message" in resp.json()

    @pytest.mark.asyncio
    async def test_sign_up_verify_login(self, client, db):
        payload = {"username": "vesto", "password": "redshift", "email": "vesto@example.org"}
        resp = await client.post("/student-sign-up", json=payload)
        body = resp.json()
        assert resp.status_code == 200
        assert body["status"] == "ok"
        assert body["success"] is True
        assert "password" not in body["student_info"]

        resp = await client.post("/student-sign-up", json=payload)
        assert resp.json()["status"] == "email_already_exists"
        assert resp.json()["success"] is False

        login = {"email": "vesto@example.org", "password": "redshift"}
        resp = await client.put("/student-login", json=login)
        assert resp.json() == {"result": "not_verified", "id": None, "success": False}

        code = await _verification_code(db, "vesto@example.org")
        resp = await client.post(f"/verify-student/{code}")
        assert resp.json()["status"] == "ok"
        resp = await client.post(f"/verify-student/{code}")
        assert resp.json()["status"] == "already_verified"

        resp = await client.put("/student-login", json=login)
        assert resp.json()["result"] == "ok"
        assert resp.json()["id"] is not None

    @pytest.mark.asyncio
    async def test_sign_up_rejects_bad_email(self, client):
        resp = await client.post("/student-sign-up", json={"username": "x", "password": "x", "email": "nope"})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_create_class_and_join_with_camel_case_code(self, client, make_educator):
        educator = await make_educator()
        resp = await client.post("/create-class", json={"educatorID": educator.id, "name": "Astro 101"})
        body = resp.json()
        assert body["status"] == "ok"
        code = body["class"]["code"]

        resp = await client.post("/create-class", json={"educator_id": educator.id, "name": "Astro 101"})
        assert resp.json()["status"] == "already_exists"
        assert resp.json()["class"] is None

        resp = await client.get(f"/validate-classroom-code/{code}")
        assert resp.json()["valid"] is True

        resp = await client.post(
            "/student-sign-up",
            json={"username": "ada", "password": "x", "email": "ada@example.org", "classroomCode": code},
        )
        assert resp.json()["status"] == "ok"

        students = (await client.get("/students")).json()
        resp = await client.get(f"/student-classes/{students[0]['id']}")
        assert [c["code"] for c in resp.json()["classes"]] == [code]


class TestClassRoutes:
    @pytest.mark.asyncio
    async def test_story_state_round_trip(self, client, make_student):
        student = await make_student()
        url = f"/story-state/{student.id}/hubbles_law"

        assert (await client.get(url)).status_code == 404
        resp = await client.put(url, json={"stage": 3})
        assert resp.status_code == 200
        assert (await client.get(url)).json()["state"] == {"stage": 3}

    @pytest.mark.asyncio
    async def test_story_state_unknown_student(self, client):
        resp = await client.put("/story-state/999/hubbles_law", json={"stage": 1})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_story_state_unknown_story(self, client, make_student):
        student = await make_student()
        resp = await client.put(f"/story-state/{student.id}/no_such_story", json={"stage": 1})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Story not found"

    @pytest.mark.asyncio
    async def test_roster(self, client, make_student, make_educator, make_class):
        ada = await make_student()
        cls = await make_class(await make_educator(), students=[ada])
        await client.put(f"/story-state/{ada.id}/hubbles_law", json={"stage": 4})

        roster = (await client.get(f"/roster-info/{cls.id}")).json()
        assert roster["hubbles_law"][0]["student"]["username"] == "ada"
        assert roster["hubbles_law"][0]["story_state"] == {"stage": 4}

    @pytest.mark.asyncio
    async def test_student_options_defaults(self, client, make_student):
        student = await make_student()
        resp = await client.get(f"/student-options/{student.id}")
        assert resp.json()["speech_rate"] == 1.0

        resp = await client.put(f"/student-options/{student.id}", json={"speech_autoread": True})
        assert resp.json()["speech_autoread"] is True
        assert (await client.get("/student-options/999")).status_code == 404


class TestHubbleRoutes:
    @pytest.mark.asyncio
    async def test_submit_by_bare_name_then_update(self, client, make_student, make_galaxy):
        student = await make_student()
        galaxy = await make_galaxy(name="NGC4889.fits")
        payload = {"student_id": student.id, "galaxy_name": "NGC4889", "velocity_value": 7200.0}

        resp = await client.put("/hubbles_law/submit-measurement", json=payload)
        assert resp.status_code == 200
        assert resp.json()["status"] == "measurement_created"
        assert resp.json()["measurement"]["galaxy_id"] == galaxy.id

        resp = await client.put(
            "/hubbles_law/submit-measurement",
            json={"student_id": student.id, "galaxy_id": galaxy.id, "est_dist_value": 98.0},
        )
        assert resp.json()["status"] == "measurement_updated"
        assert resp.json()["measurement"]["velocity_value"] == 7200.0
        assert resp.json()["measurement"]["est_dist_value"] == 98.0

    @pytest.mark.asyncio
    async def test_submit_unknown_galaxy(self, client, make_student):
        student = await make_student()
        resp = await client.put(
            "/hubbles_law/submit-measurement", json={"student_id": student.id, "galaxy_name": "NGC0000"}
        )
        assert resp.status_code == 404
        assert resp.json()["status"] == "no_such_galaxy"
        assert resp.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unknown_student_reported_before_unknown_galaxy(self, client):
        resp = await client.put(
            "/hubbles_law/submit-measurement", json={"student_id": 999, "galaxy_name": "NGC0000"}
        )
        assert resp.status_code == 404
        assert resp.json()["status"] == "no_such_student"

    @pytest.mark.asyncio
    async def test_submit_needs_galaxy(self, client):
        resp = await client.put("/hubbles_law/submit-measurement", json={"student_id": 1})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_by_name(self, client, make_student, make_galaxy):
        student = await make_student()
        await make_galaxy(name="NGC4889.fits")
        await client.put(
            "/hubbles_law/submit-measurement",
            json={"student_id": student.id, "galaxy_name": "NGC4889", "velocity_value": 1.0},
        )

        resp = await client.delete(f"/hubbles_law/measurement/{student.id}/NGC4889")
        assert resp.status_code == 200
        assert resp.json()["status"] == "measurement_deleted"
        resp = await client.delete(f"/hubbles_law/measurement/{student.id}/NGC4889")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_sample_measurement(self, client, make_student, make_galaxy):
        student = await make_student()
        sample = await make_galaxy(name="SAMPLE.fits", is_sample=True)
        payload = {
            "student_id": student.id,
            "galaxy_id": sample.id,
            "measurement_number": "second",
            "velocity_value": 7000.0,
            "est_dist_value": 100.0,
        }
        resp = await client.put("/hubbles_law/sample-measurement", json=payload)
        assert resp.json()["status"] == "measurement_created"

        rows = (await client.get("/hubbles_law/sample-measurements/second")).json()
        assert [r["student_id"] for r in rows] == [student.id]
        resp = await client.get(f"/hubbles_law/sample-measurements/{student.id}/first")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_mark_galaxy(self, client, make_galaxy):
        await make_galaxy(name="NGC4889.fits")

        resp = await client.put("/hubbles_law/mark-galaxy-bad", json={})
        assert resp.status_code == 400
        resp = await client.put("/hubbles_law/mark-galaxy-bad", json={"galaxy_name": "NGC0000"})
        assert resp.status_code == 404
        resp = await client.put("/hubbles_law/mark-galaxy-bad", json={"galaxy_name": "NGC4889"})
        assert resp.json()["status"] == "galaxy_marked_bad"

    @pytest.mark.asyncio
    async def test_spectrum_status_needs_strict_bool(self, client, make_galaxy):
        await make_galaxy(name="NGC4889.fits")
        url = "/hubbles_law/set-spectrum-status"

        assert (await client.post(url, json={"galaxy_name": "NGC4889", "good": "yes"})).status_code == 422
        resp = await client.post(url, json={"galaxy_name": "NGC4889", "good": False})
        assert resp.json()["marked_bad"] is True
        assert (await client.get("/hubbles_law/unchecked-galaxies")).json() == []


class TestClassDataRoutes:
    @pytest.mark.asyncio
    async def test_stage_three_data(self, client, make_student, make_educator, make_class, make_galaxy):
        ada = await make_student("ada")
        bob = await make_student("bob")
        cls = await make_class(await make_educator(), students=[ada, bob])
        galaxy = await make_galaxy(name="NGC4889.fits")

        assert (await client.get(f"/hubbles_law/stage-3-data/{ada.id}/{cls.id}")).status_code == 404
        await client.put(
            "/hubbles_law/submit-measurement",
            json={"student_id": bob.id, "galaxy_id": galaxy.id, "velocity_value": 7000.0, "est_dist_value": 100.0},
        )

        resp = await client.get(f"/hubbles_law/stage-3-data/{ada.id}/{cls.id}")
        assert resp.status_code == 200
        assert resp.json()["class_id"] == cls.id
        assert [m["student_id"] for m in resp.json()["measurements"]] == [bob.id]

        resp = await client.get(f"/hubbles_law/stage-3-data/{ada.id}")
        assert resp.status_code == 200
        assert resp.json()["class_id"] is None

        # far future cutoff in epoch milliseconds
        resp = await client.get(
            f"/hubbles_law/stage-3-data/{ada.id}/{cls.id}", params={"last_checked": 4102444800000}
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_all_data(self, client, make_student, make_educator, make_class, make_galaxy):
        ada = await make_student()
        cls = await make_class(await make_educator(), students=[ada])
        galaxy = await make_galaxy(name="NGC4889.fits")
        await client.put(
            "/hubbles_law/submit-measurement",
            json={"student_id": ada.id, "galaxy_id": galaxy.id, "velocity_value": 7000.0, "est_dist_value": 100.0},
        )

        body = (await client.get("/hubbles_law/all-data")).json()
        assert set(body) == {"measurements", "student_data", "class_data"}
        assert len(body["measurements"]) == 1
        assert body["student_data"][0]["student_id"] == ada.id
        assert body["student_data"][0]["hubble_fit_value"] == pytest.approx(70.0)
        assert body["class_data"][0]["class_id"] == cls.id
        assert body["class_data"][0]["hubble_fit_unit"] == "km / s / Mpc"

    @pytest.mark.asyncio
    async def test_new_galaxies(self, client, make_galaxy):
        await make_galaxy(name="NGC4889.fits")
        assert (await client.get("/hubbles_law/new-galaxies")).json() == []

        url = "/hubbles_law/set-spectrum-status"
        await client.post(url, json={"galaxy_name": "NGC4889", "good": True})
        names = [g["name"] for g in (await client.get("/hubbles_law/new-galaxies")).json()]
        assert names == ["NGC4889.fits"]
