"""Deputy-record resolution for Assemblée nationale voting records.

Resolves deputy IDs referenced by ballots into identity records (name,
profession, political group) through an in-memory cache backed by a
persistent store and the public-data API:

- **normalize**: reconciles the upstream JSON shapes
- **cache** / **scheduler**: non-blocking reads, batched remote lookups
- **prefetch**: bulk warm-up from the persistent store
- **sync**: fills the persistent store from public rosters
"""
