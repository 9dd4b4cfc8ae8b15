"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- ledger: 재고 이동 기록 (구매, 로스팅, 소비, 조정, 브루) 및 엔트리 조회
- inventory: 재고 스냅샷 / 감사
- schedules: 로스팅 스케줄
- equipment: 장비 관리
"""
