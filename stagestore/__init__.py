"""Persist build stage events delivered by a message broker.

Each delivered payload flows through
:class:`stagestore.pipeline.StageEventPipeline`: decode, insert once, then
report the outcome as a log line and an error counter.
"""
