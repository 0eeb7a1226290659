"""
Render the automobile price report with the default settings.

Expects imports-85.data in the working directory; writes report/report.md and
the plots next to it.
"""
from auto_price.config import PipelineConfig
from auto_price.report import run_full_pipeline, write_report

config = PipelineConfig()
results = run_full_pipeline(config)
write_report(results)
