"""Web API 통합 테스트

임시 settings.yaml로 DB 경로를 지정하고 TestClient로 라우트 호출.
"""

from datetime import timedelta
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from core.config.loader import Settings, get_settings
from core.utils.timezone import now_utc
from web.app import app

USER = "user-1"
BASE = f"/api/users/{USER}"


@pytest.fixture
def client(temp_dir: Path) -> Generator[TestClient, None, None]:
    """임시 DB를 사용하는 TestClient (lifespan 포함)"""
    settings_file = temp_dir / "settings.yaml"
    settings_file.write_text(
        f'database:\n  path: "{(temp_dir / "web.db").as_posix()}"\n',
        encoding="utf-8",
    )
    Settings.reset()
    get_settings(settings_file)

    with TestClient(app) as test_client:
        yield test_client

    Settings.reset()


def purchase(client: TestClient, weight: str = "1000") -> dict:
    response = client.post(
        f"{BASE}/green-purchases",
        json={"name": "Kenya AA", "origin": "Kenya", "weight": weight},
    )
    assert response.status_code == 201
    return response.json()


def roast(client: TestClient, green: str = "220", roasted: str = "185") -> dict:
    response = client.post(
        f"{BASE}/roasts",
        json={
            "green_coffee_name": "Kenya AA",
            "roast_level": "medium",
            "green_weight": green,
            "roasted_weight": roasted,
        },
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """헬스 체크"""

    def test_health(self, client: TestClient) -> None:
        """GET /health"""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"


class TestLedgerRoutes:
    """기록 / 조회 라우트"""

    def test_purchase_and_roast(self, client: TestClient) -> None:
        """구매 → 로스팅 → 재고"""
        entry = purchase(client)
        result = roast(client)

        assert entry["action_type"] == "green_purchase"
        assert entry["amount_change"] == "1000"
        assert entry["seq"] == 1
        assert result["roasted_entry"]["amount_change"] == "185"
        assert result["green_entry"]["amount_change"] == "-220"
        assert result["roasted_entry"]["metadata"]["batch_number"] == 1
        assert result["schedule"] is None

        inventory = client.get(f"{BASE}/inventory").json()
        assert [row["current_amount"] for row in inventory["green"]] == ["780"]
        assert [row["current_amount"] for row in inventory["roasted"]] == ["185"]

    def test_validation_error_is_422_with_field(self, client: TestClient) -> None:
        """ValidationError → 422 + field"""
        response = client.post(
            f"{BASE}/roasts",
            json={
                "green_coffee_name": "Kenya AA",
                "roast_level": "medium",
                "green_weight": "200",
                "roasted_weight": "210",
            },
        )

        assert response.status_code == 422
        assert response.json()["field"] == "roasted_weight"
        assert client.get(f"{BASE}/entries").json()["entries"] == []

    def test_unknown_roast_level(self, client: TestClient) -> None:
        """허용되지 않는 로스팅 레벨 → 422"""
        response = client.post(
            f"{BASE}/roasts",
            json={
                "green_coffee_name": "Kenya AA",
                "roast_level": "charcoal",
                "green_weight": "200",
                "roasted_weight": "170",
            },
        )

        assert response.status_code == 422
        assert response.json()["field"] == "roast_level"

    def test_consumption_and_adjustment(self, client: TestClient) -> None:
        """소비, 조정 기록"""
        purchase(client)
        roast(client)

        consumed = client.post(f"{BASE}/consumptions", json={"coffee_name": "Kenya AA", "amount": "35"})
        adjusted = client.post(
            f"{BASE}/adjustments/green_coffee",
            json={"coffee_name": "Kenya AA", "new_amount": "700", "reason": "physical_count"},
        )

        assert consumed.status_code == 201
        assert consumed.json()["amount_change"] == "-35"
        assert adjusted.status_code == 201
        assert adjusted.json()["amount_change"] == "-80"

        inventory = client.get(f"{BASE}/inventory").json()
        assert inventory["green"][0]["current_amount"] == "700"
        assert inventory["roasted"][0]["current_amount"] == "150"

    def test_adjustment_invalid_entity_type(self, client: TestClient) -> None:
        """조정 불가 엔티티 → 422"""
        response = client.post(
            f"{BASE}/adjustments/equipment",
            json={"coffee_name": "Kenya AA", "new_amount": "1", "reason": "other"},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "entity_type"

    def test_brew(self, client: TestClient) -> None:
        """브루 기록"""
        purchase(client)
        roast(client)

        response = client.post(
            f"{BASE}/brews",
            json={"coffee_name": "Kenya AA", "brew_method": "V60", "coffee_amount": "15", "water_amount": "250"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["brew_entry"]["metadata"]["brew_ratio"] == "16.7"
        assert data["consumption_entry"]["amount_change"] == "-15"

    def test_entries_filter_and_paging(self, client: TestClient) -> None:
        """엔트리 필터 / 페이지"""
        purchase(client)
        roast(client)

        consumptions = client.get(f"{BASE}/entries", params={"action_type": "consumption"}).json()
        page = client.get(f"{BASE}/entries", params={"limit": 1, "offset": 1}).json()

        assert [e["entity_type"] for e in consumptions["entries"]] == ["green_coffee"]
        assert page["limit"] == 1
        assert [e["action_type"] for e in page["entries"]] == ["roast_completed"]

    def test_entries_invalid_filter(self, client: TestClient) -> None:
        """알 수 없는 action_type → 422"""
        response = client.get(f"{BASE}/entries", params={"action_type": "refund"})

        assert response.status_code == 422
        assert response.json()["field"] == "action_type"

    def test_entries_limit_bounds(self, client: TestClient) -> None:
        """limit 범위 밖 → 422"""
        assert client.get(f"{BASE}/entries", params={"limit": 0}).status_code == 422
        assert client.get(f"{BASE}/entries", params={"limit": 501}).status_code == 422

    def test_entity_history(self, client: TestClient) -> None:
        """엔티티 이력"""
        entry = purchase(client)
        roast(client)

        history = client.get(f"{BASE}/entities/{entry['entity_id']}/history").json()

        assert [e["amount_change"] for e in history] == ["1000", "-220"]


class TestInventoryAudit:
    """재고 감사 라우트"""

    def test_audit(self, client: TestClient) -> None:
        """감사 결과 = 스냅샷 잔액"""
        purchase(client)
        roast(client)

        response = client.get(f"{BASE}/inventory/green_coffee/kenya aa/audit")

        assert response.status_code == 200
        data = response.json()
        assert data["coffee_key"] == "kenya aa"
        assert data["total"] == "780"
        assert data["display_amount"] == "780"
        assert data["running_totals"] == ["1000", "780"]
        assert data["warnings"] == []

    def test_audit_negative(self, client: TestClient) -> None:
        """음수 합계 → 표시 0 + 경고"""
        roast(client)

        data = client.get(f"{BASE}/inventory/green_coffee/Kenya AA/audit").json()

        assert data["total"] == "-220"
        assert data["display_amount"] == "0"
        assert [w["code"] for w in data["warnings"]] == ["negative_balance"]


class TestScheduleRoutes:
    """스케줄 라우트"""

    def test_schedule_lifecycle(self, client: TestClient) -> None:
        """생성 → 수정 → 완료"""
        tomorrow = (now_utc().date() + timedelta(days=1)).isoformat()
        created = client.post(
            f"{BASE}/schedules",
            json={
                "coffee_name": "Kenya AA",
                "scheduled_date": tomorrow,
                "green_weight": "220",
                "target_roast_level": "medium",
            },
        )
        assert created.status_code == 201
        schedule_id = created.json()["schedule_id"]

        upcoming = client.get(f"{BASE}/schedules/upcoming").json()
        assert [s["schedule_id"] for s in upcoming] == [schedule_id]

        edited = client.patch(f"{BASE}/schedules/{schedule_id}", json={"notes": "light body"})
        assert edited.json()["notes"] == "light body"

        completed = client.post(
            f"{BASE}/schedules/{schedule_id}/complete",
            json={"actual_roasted_weight": "184"},
        )
        assert completed.json()["state"] == "completed"
        assert completed.json()["actual_roasted_weight"] == "184"
        assert client.get(f"{BASE}/schedules/upcoming").json() == []
        assert [s["state"] for s in client.get(f"{BASE}/schedules").json()] == ["completed"]

    def test_roast_completes_schedule(self, client: TestClient) -> None:
        """로스팅 기록이 일치하는 스케줄을 완료"""
        today = now_utc().date().isoformat()
        schedule_id = client.post(
            f"{BASE}/schedules",
            json={
                "coffee_name": "Kenya AA",
                "scheduled_date": today,
                "green_weight": "218",
                "target_roast_level": "medium",
            },
        ).json()["schedule_id"]
        purchase(client)

        result = roast(client)

        assert result["schedule"]["schedule_id"] == schedule_id
        assert result["schedule"]["state"] == "completed"
        assert result["schedule_entry"]["action_type"] == "roast_edited"

    def test_delete_and_unknown(self, client: TestClient) -> None:
        """삭제 → 목록 제외, 없는 ID → 422"""
        schedule_id = client.post(
            f"{BASE}/schedules",
            json={
                "coffee_name": "Kenya AA",
                "scheduled_date": "2026-01-01",
                "green_weight": "220",
                "target_roast_level": "medium",
            },
        ).json()["schedule_id"]

        deleted = client.delete(f"{BASE}/schedules/{schedule_id}")
        missing = client.get(f"{BASE}/schedules/missing-id")

        assert deleted.json()["state"] == "deleted"
        assert client.get(f"{BASE}/schedules").json() == []
        assert missing.status_code == 422
        assert missing.json()["field"] == "schedule_id"


class TestEquipmentRoutes:
    """장비 라우트"""

    def test_add_update_list(self, client: TestClient) -> None:
        """등록 → 수정 → 목록"""
        created = client.post(
            f"{BASE}/equipment",
            json={"equipment_type": "grinder", "brand": "Comandante", "model": "C40"},
        )
        assert created.status_code == 201
        equipment_id = created.json()["equipment_id"]

        updated = client.put(
            f"{BASE}/equipment/{equipment_id}",
            json={"equipment_type": "grinder", "brand": "Comandante", "model": "C40 MK4"},
        )
        listed = client.get(f"{BASE}/equipment").json()

        assert updated.json()["model"] == "C40 MK4"
        assert [e["model"] for e in listed] == ["C40 MK4"]

    def test_update_unknown(self, client: TestClient) -> None:
        """없는 장비 수정 → 422"""
        response = client.put(
            f"{BASE}/equipment/missing-id",
            json={"equipment_type": "grinder", "brand": "Comandante", "model": "C40"},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "equipment_id"
