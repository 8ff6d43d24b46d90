"""
Shared, cross-cutting code for the API and the commands.

`core/` holds the small building blocks every feature uses: deadline scopes,
bounded calls, racing, graceful serving, DB wiring, settings and logging.
Keep feature-specific SQL and business logic in the corresponding feature
package (e.g. `exchange/`).
"""
