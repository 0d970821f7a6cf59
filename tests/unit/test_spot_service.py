"""SpotApplicationService and demo seed tests."""

import pytest

from src.ps_common.errors import SpotNotFoundError
from src.ps_spot.infrastructure.seed import SF_SPOTS, demo_spots, seed_spots
from tests.fakes import FakeDB, FakeSpotRepository, World, make_spot


@pytest.fixture
def world() -> World:
    return World(
        make_spot("mission", total=12, available=8, zone="Mission", name="Mission & 16th St"),
        make_spot("soma", total=18, available=14, zone="SoMa", name="SoMa",
                  lat=37.7869, lng=-122.3980),
        make_spot("wharf", total=20, available=15, zone="Fisherman's Wharf",
                  name="Fisherman's Wharf", lat=37.8080, lng=-122.4150),
        make_spot("closed", total=5, zone="Mission", name="Closed Lot", is_active=False),
    )


class TestListSpots:
    async def test_all_active_sorted_by_name(self, world: World) -> None:
        result = await world.spots.list_spots(world.db)

        assert result.count == 3
        assert [s.id for s in result.items] == ["wharf", "mission", "soma"]

    async def test_zone_filter(self, world: World) -> None:
        result = await world.spots.list_spots(world.db, zone="Mission")
        assert [s.id for s in result.items] == ["mission"]

    async def test_bounding_box(self, world: World) -> None:
        result = await world.spots.list_spots(world.db, lat=37.7869, lng=-122.3980, radius=0.01)
        assert [s.id for s in result.items] == ["soma"]

    async def test_lat_without_lng_ignored(self, world: World) -> None:
        result = await world.spots.list_spots(world.db, lat=0.0)
        assert result.count == 3

    async def test_default_radius(self, world: World) -> None:
        result = await world.spots.list_spots(world.db, lat=37.7651, lng=-122.4194)
        # 0.05 degrees around Mission reaches SoMa and the Wharf too.
        assert result.count == 3

    async def test_response_shape(self, world: World) -> None:
        result = await world.spots.list_spots(world.db, zone="SoMa")
        spot = result.items[0]

        assert spot.rate_display == "$2.50"
        assert spot.available is True
        assert spot.occupancy_percentage == pytest.approx(22.22)


class TestGetAndUpdate:
    async def test_get_spot(self, world: World) -> None:
        spot = await world.spots.get_spot(world.db, "soma")
        assert spot.name == "SoMa"

    async def test_get_unknown(self, world: World) -> None:
        with pytest.raises(SpotNotFoundError):
            await world.spots.get_spot(world.db, "nope")

    async def test_update_clamps_and_broadcasts(self, world: World) -> None:
        spot = await world.spots.update_availability(world.db, "mission", 50)

        assert spot.available_spots == 12
        assert world.publisher.events == [("mission", 12)]

    async def test_update_to_zero_marks_unavailable(self, world: World) -> None:
        spot = await world.spots.update_availability(world.db, "mission", 0)
        assert spot.available is False


class TestStatistics:
    async def test_totals_over_active_spots(self, world: World) -> None:
        await world.coordinator.create_session(world.db, "ABC123", "mission", 60, 250)
        cancelled = await world.coordinator.create_session(world.db, "XYZ789", "soma", 60, 400)
        await world.coordinator.cancel_session(world.db, cancelled.id)

        stats = await world.spots.statistics(world.db)

        assert stats.total_spots == 50
        assert stats.available_spots == 7 + 14 + 15
        assert stats.active_sessions == 1
        assert stats.total_revenue_cents == 250
        assert stats.total_revenue_display == "$2.50"
        assert stats.total_fees_saved_cents == 32
        assert stats.occupancy_rate == pytest.approx(28.0)

    async def test_empty(self) -> None:
        world = World()
        stats = await world.spots.statistics(world.db)
        assert stats.total_spots == 0
        assert stats.occupancy_rate == 0.0


class TestSeed:
    def test_demo_spots_valid(self) -> None:
        spots = demo_spots()

        assert len(spots) == len(SF_SPOTS) == 10
        assert len({s.id for s in spots}) == 10
        for spot in spots:
            assert 0 <= spot.available_spots <= spot.total_spots
            assert spot.rate_cents > 0

    async def test_seeds_empty_table_once(self) -> None:
        repo = FakeSpotRepository()
        db = FakeDB()

        first = await seed_spots(db, repo)
        second = await seed_spots(db, repo)

        assert first == 10
        assert second == 0
        assert len(repo.spots) == 10
        assert db.commits == 1

    async def test_skips_when_spots_exist(self) -> None:
        repo = FakeSpotRepository(make_spot("custom"))
        assert await seed_spots(FakeDB(), repo) == 0
        assert list(repo.spots) == ["custom"]
