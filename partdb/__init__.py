"""Part-DB 核心：结构化树存储与权限位掩码引擎。"""

__version__ = "0.4.0"
