"""SLD Tool Backend - stateless HTTP API over sldcore."""
