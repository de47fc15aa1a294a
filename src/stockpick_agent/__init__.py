# 将 stockpick_agent 声明为可导入的包，并集中导出主要子模块名称列表，方便外部统一引用。
__all__ = [
    "cache",
    "config",
    "constants",
    "currency",
    "datasources",
    "engine",
    "evidence",
    "filters",
    "formatter",
    "identify",
    "metrics",
    "models",
    "normalize",
    "scoring",
]
