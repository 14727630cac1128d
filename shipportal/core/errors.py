# shipportal/core/errors.py
"""运维脚本与服务层共用的异常类型。脚本入口统一捕获后以退出码 1 结束。"""


class ConfigError(RuntimeError):
    """环境变量缺失或取值非法。"""


class MigrationError(RuntimeError):
    """迁移注册表或迁移账本（schema_migrations）状态不一致。"""
