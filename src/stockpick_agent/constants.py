# 定义过滤、评分与证据链的算法版本号，以及汇率缓存 TTL、备用汇率、各阶段名称等全局常量，用于追踪与控制分析行为。
FILTERS_ALGO_VERSION = "filters_v1"
SCORING_ALGO_VERSION = "scoring_v1"
EVIDENCE_ALGO_VERSION = "evidence_v1"

FX_CACHE_KEY = "fx:USD:KRW"
FX_CACHE_TTL_SECONDS = 5 * 60  # 5m
FALLBACK_USD_KRW = 1350.0

DEFAULT_FETCH_TIMEOUT_SECONDS = 20.0
MAX_WORKER_CAP = 5
MIN_HISTORY_MONTHS = 6

STAGE_VALIDITY = "유효성 검증"
STAGE_PRICE = "가격 필터"
STAGE_AFFORDABILITY = "매수 가능성"
STAGE_PERIOD = "기간 실현 가능성"
STAGE_DATA_RETRIEVAL = "데이터 조회"
STAGE_ANALYSIS = "분석 처리"
