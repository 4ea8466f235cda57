"""
Tests for galaxy listings and report counters.
"""
import pytest
from sqlalchemy import select

from cosmicds.models import Galaxy
from cosmicds.services.galaxies import (
    get_all_galaxies,
    get_galaxies_for_types,
    get_new_galaxies,
    get_sample_galaxy,
    get_unchecked_spectra_galaxies,
    mark_galaxy_bad,
    mark_galaxy_spectrum_bad,
    mark_galaxy_tileload_bad,
    set_galaxy_spectrum_status,
)


class TestListings:
    @pytest.mark.asyncio
    async def test_all_galaxies_skip_bad_and_sample(self, make_galaxy, db):
        good = await make_galaxy(name="A.fits")
        await make_galaxy(name="B.fits", is_bad=True)
        await make_galaxy(name="S.fits", is_sample=True)

        assert [g.id for g in await get_all_galaxies(db)] == [good.id]

    @pytest.mark.asyncio
    async def test_filter_by_type(self, make_galaxy, db):
        elliptical = await make_galaxy(name="E.fits", type="E")
        spiral = await make_galaxy(name="Sp.fits", type="Sp")
        await make_galaxy(name="Ir.fits", type="Ir")

        found = await get_galaxies_for_types(db, ["E", " Sp ", ""])
        assert [g.id for g in found] == [elliptical.id, spiral.id]
        assert await get_galaxies_for_types(db, []) == []

    @pytest.mark.asyncio
    async def test_sample_galaxy(self, make_galaxy, db):
        assert await get_sample_galaxy(db) is None
        sample = await make_galaxy(name="S.fits", is_sample=True)
        assert (await get_sample_galaxy(db)).id == sample.id


class TestReports:
    @pytest.mark.asyncio
    async def test_mark_bad_increments(self, make_galaxy, db):
        galaxy = await make_galaxy()
        assert await mark_galaxy_bad(db, galaxy.id)
        assert await mark_galaxy_bad(db, galaxy.id)

        # the instance already in the session is refreshed, not left stale
        assert galaxy.marked_bad == 2
        stored = (await db.execute(select(Galaxy.marked_bad).where(Galaxy.id == galaxy.id))).scalar_one()
        assert stored == 2

    @pytest.mark.asyncio
    async def test_counters_are_independent(self, make_galaxy, db):
        galaxy = await make_galaxy()
        await mark_galaxy_spectrum_bad(db, galaxy.id)
        await mark_galaxy_tileload_bad(db, galaxy.id)
        await mark_galaxy_tileload_bad(db, galaxy.id)

        assert (galaxy.marked_bad, galaxy.spec_marked_bad, galaxy.tileload_marked_bad) == (0, 1, 2)

    @pytest.mark.asyncio
    async def test_unknown_galaxy(self, db):
        assert not await mark_galaxy_bad(db, 404)
        assert not await set_galaxy_spectrum_status(db, 404, True)

    @pytest.mark.asyncio
    async def test_spectrum_status(self, make_galaxy, db):
        galaxy = await make_galaxy()
        assert [g.id for g in await get_unchecked_spectra_galaxies(db)] == [galaxy.id]

        assert await set_galaxy_spectrum_status(db, galaxy.id, False)
        assert galaxy.spec_checked is True
        assert galaxy.spec_is_bad is True
        assert await get_unchecked_spectra_galaxies(db) == []

        assert await set_galaxy_spectrum_status(db, galaxy.id, True)
        assert galaxy.spec_is_bad is False


class TestNewGalaxies:
    @pytest.mark.asyncio
    async def test_only_checked_good_spectra(self, make_galaxy, db):
        good = await make_galaxy(name="A.fits")
        bad_spectrum = await make_galaxy(name="B.fits")
        await make_galaxy(name="C.fits")
        sample = await make_galaxy(name="S.fits", is_sample=True)

        assert await get_new_galaxies(db) == []
        await set_galaxy_spectrum_status(db, good.id, True)
        await set_galaxy_spectrum_status(db, bad_spectrum.id, False)
        await set_galaxy_spectrum_status(db, sample.id, True)

        assert [g.id for g in await get_new_galaxies(db)] == [good.id]
