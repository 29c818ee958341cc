"""
Appraisal Coordinator - Engine Package

Cross-cutting utilities shared by the coordinator:
  - appraisal_engine.logging: JSON log formatting, WorkflowTrace events
  - appraisal_engine.config: layered YAML configuration
"""
