"""hydrodiag: 液压系统故障诊断助手

基于症状/根因/测试知识图谱的多轮对话诊断引擎。
"""

__version__ = "0.1.0"
