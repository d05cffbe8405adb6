"""
Test Scope Companion API

FastAPI backend that tells a QA engineer which existing TestRail cases a
Bitbucket pull request touches, using the linked Jira ticket and a
traceability matrix of component names to search tags.

How a pull request is analyzed:
- The ticket is fetched from Jira (components, acceptance criteria, linked PRs)
- The PR and its full changed-file list come from Bitbucket Server or Cloud
- The change is classified (Relaxed, Sleepy, Sarcastic, Overloaded, Angry) by
  size and risk; the category sets how many impacted cases are worth showing
- The whole TestRail suite is loaded and every section path is resolved
- Impact selection: direct ticket references first, then component matches
  narrowed by ticket title keywords and changed file names
- Every candidate is scored 0-100 for relevance, and the regression suite is
  ranked the same way
- Testing effort is estimated from impacted sections and change size

Usage:
1. Copy .env.example to .env and fill in Jira, Bitbucket and TestRail credentials
2. Copy config/traceability.example.json to config/traceability.json and edit it
3. Install: pip install -e ".[test]"
4. Run the application: python main.py
5. Access API docs at: http://localhost:3002/api/v1/docs

API Endpoints:
- POST /api/v1/analysis/pull-request - Full analysis for a ticket and/or PR URL
- POST /api/v1/analysis/classify - Classify a change from metrics or files
- POST /api/v1/analysis/impact - Impacted cases over a supplied inventory
- POST /api/v1/analysis/score - Relevance of one test case to a change
- GET /api/v1/integrations/jira/{key} - Ticket details
- GET /api/v1/integrations/jira/{key}/pull-requests - Linked or matching PRs
- GET /api/v1/integrations/testrail/fields - TestRail custom case fields
- POST /api/v1/integrations/testrail/upload - Upload cases into a section
- GET /api/v1/config - Effective configuration, credentials omitted
- GET /api/v1/health - Health check

Architecture Components:

1. Routes (testscope/api/routes/):
   - Thin HTTP layer, input validation using Pydantic

2. Services (testscope/services/):
   - Pure scoring core: keyword extraction, component matching, relevance
     scoring, impact selection, change classification
   - Analysis service orchestrating the upstream fetches

3. Repositories (testscope/repositories/):
   - Interfaces for the ticket tracker, the PR host and the test repository
   - Jira, Bitbucket and TestRail implementations over httpx

4. Models (testscope/models/):
   - Pydantic domain models and request/response schemas

5. Core (testscope/core/):
   - Dependency injection, upstream errors, traceability loading, caching
"""

__version__ = "1.0.0"
__description__ = "Relevance-scored test scope selection for pull requests"
