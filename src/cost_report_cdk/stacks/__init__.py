from .cost_report_stack import CostReportStack

__all__ = ["CostReportStack"]
