"""
Business Manager Backend package.

Entity store for companies, projects, tasks, time entries and knowledge-base
articles, served over a FastAPI CRUD API. The application instance lives in
`src.api.main` (`app`, or `create_app()` for a fresh one).
"""
