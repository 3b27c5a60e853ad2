"""
ResusCert CLI Module

Command-line interface for ResusCert using Typer.

Available commands:
- results: Comprehensive seven-assessment results with filters
- stats: Status counts per assessment and certificate
- grade: Letter grade for a score
- certificates: List certificates
- issue / approve / revoke: Certificate lifecycle transitions
- history: Transition log of a certificate

Example usage:
    resuscert results --records storage/records.json --certified NOT_CERTIFIED
    resuscert revoke sub_001 sub_002 --actor coordinator@example.com
"""

__version__ = "0.1.0"
__all__ = ["main"]
