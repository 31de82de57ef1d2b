"""
业务异常定义
服务层在写库之前做校验，失败时抛出这里的异常，由页面层捕获并提示
"""


class ValidationError(ValueError):
    """表单/参数校验失败，不会产生任何写入"""


class NotFoundError(ValueError):
    """请求的记录不存在"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} #{entity_id} 不存在")


class InvalidTransitionError(ValidationError):
    """订单状态流转不合法"""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"订单状态不能从 {current} 变更为 {target}")


class ConfigError(RuntimeError):
    """数据库连接配置缺失或无效"""
