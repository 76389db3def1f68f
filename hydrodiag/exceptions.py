"""异常定义"""


class HydrodiagError(Exception):
    """hydrodiag 异常基类"""


class KnowledgeBaseError(HydrodiagError):
    """知识库加载失败

    属于启动期致命错误，调用方应终止启动而不是按请求恢复。
    """


class ConfigError(HydrodiagError):
    """配置内容非法"""
