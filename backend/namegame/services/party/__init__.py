"""Party session domain services: tokens, host checks, transitions, projection.

HTTP routes and the CLI import from here, keeping transport concerns
separated from the session state machine. Every service takes an explicit
``SessionStore`` handle instead of reaching for the global database session.
"""
