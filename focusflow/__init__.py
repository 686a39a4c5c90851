"""FocusFlow：番茄钟专注计时，附带任务、项目、愿景与目标追踪。"""

__version__ = "0.1.0"

__all__ = ["__version__"]
