"""
재고 감사 스크립트

한 커피의 원장 엔트리를 재생 순서대로 출력하고
스냅샷 잔액과 감사 잔액이 일치하는지 확인.

사용법:
    python -m scripts.audit_inventory user-1 roasted_coffee "Ethiopia Sidamo"
    python -m scripts.audit_inventory user-1 green_coffee "Kenya AA" --db data/roastledger.db
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.aggregator import InventoryAudit
from core.ledger.errors import ConsistencyWarning, LedgerError
from core.ledger.schema import init_ledger_schema
from core.ledger.service import LedgerService
from core.ledger.types import EntityType
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def run_audit(
    service: LedgerService,
    user_id: str,
    entity_type: str,
    coffee_name: str,
) -> tuple[InventoryAudit, list[ConsistencyWarning]]:
    """감사 실행

    Returns:
        (감사 결과, 스냅샷 대비 불일치 경고 목록)
    """
    audit = await service.audit_inventory(user_id, entity_type, coffee_name)
    snapshot = await service.get_inventory(user_id)

    if audit.entity_type == EntityType.GREEN_COFFEE:
        row = snapshot.find_green(coffee_name)
    else:
        row = snapshot.find_roasted(coffee_name)

    # 스냅샷은 잔액 0 이하 행을 제외하므로 행이 없으면 0과 비교
    snapshot_amount = row.current_amount if row is not None else Decimal("0")
    divergences: list[ConsistencyWarning] = []
    if snapshot_amount != audit.display_amount:
        warning = ConsistencyWarning(
            ConsistencyWarning.AUDIT_DIVERGENCE,
            f"스냅샷 잔액 {snapshot_amount} != 감사 잔액 {audit.display_amount}",
            {
                "user_id": user_id,
                "entity_type": audit.entity_type.value,
                "coffee_key": audit.coffee_key,
                "snapshot_amount": str(snapshot_amount),
                "audit_amount": str(audit.display_amount),
            },
        )
        logger.warning("재고 감사 불일치", extra={"code": warning.code, **warning.context})
        divergences.append(warning)

    return audit, divergences


def print_audit(audit: InventoryAudit, divergences: list[ConsistencyWarning]) -> None:
    """감사 결과 출력"""
    print(f"User: {audit.user_id}")
    print(f"Entity type: {audit.entity_type.value}")
    print(f"Coffee key: {audit.coffee_key}")
    print(f"Entries: {len(audit.entries)}")
    print()
    for entry, running in zip(audit.entries, audit.running_totals):
        created = entry.created_at.isoformat() if entry.created_at else "-"
        print(
            f"  {created}  {entry.action_type.value:<20} "
            f"{entry.amount_change:>12}  => {running:>12}  ({entry.entity_id[:8]})"
        )
    print()
    print(f"True total:     {audit.total}")
    print(f"Display amount: {audit.display_amount}")

    if len(audit.entity_totals) > 1:
        print("\nPer-entity totals:")
        for entity_id, total in audit.entity_totals.items():
            print(f"  {entity_id}: {total}")

    for warning in (*audit.warnings, *divergences):
        print(f"[WARN] {warning.code}: {warning.message}")


async def main(user_id: str, entity_type: str, coffee_name: str, db_path: Path) -> int:
    async with SQLiteAdapter(db_path) as db:
        await init_ledger_schema(db)
        service = LedgerService.from_db(db, get_settings().config)
        try:
            audit, divergences = await run_audit(service, user_id, entity_type, coffee_name)
        except LedgerError as e:
            logger.error("감사 실패", extra={"error": str(e)})
            print(f"Error: {e}")
            return 1

    print_audit(audit, divergences)
    return 1 if divergences else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="커피 재고 감사 (원장 재생 내역 출력)")
    parser.add_argument("user_id", help="사용자 ID")
    parser.add_argument(
        "entity_type",
        choices=[EntityType.GREEN_COFFEE.value, EntityType.ROASTED_COFFEE.value],
        help="재고 엔티티 유형",
    )
    parser.add_argument("coffee_name", help="커피 이름")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="DB 경로 (기본: settings.yaml의 database.path)",
    )
    args = parser.parse_args()

    settings = get_settings()
    setup_logging("audit", level=settings.config.log_level)
    db_path = args.db or settings.db_path
    sys.exit(asyncio.run(main(args.user_id, args.entity_type, args.coffee_name, db_path)))
