"""Submissions module for the KYC desk API

Intake, registry, review workflow, statistics and the legacy attachment
migration for identity-verification submissions.
"""
