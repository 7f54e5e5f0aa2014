from .click_worker import ClickWorker

__all__ = ["ClickWorker"]
