"""
Security Utilities for trustgate.

Threat Model
------------
Trust material is operator supplied, and a mistake there silently widens
what a process accepts:

    1. **Directory Traversal**
       Attack: custom CA configured as "../../home/user/evil.pem"
       Defense: PathSanitizer.sanitize_path() blocks ../ sequences

    2. **Misread flags**
       Attack: DISABLE_SYSTEM_CA=yes taken as true by one reader, false by another
       Defense: get_env_bool() accepts a fixed vocabulary only

    3. **Silent bypass**
       Defense: MTLSContextManager only disables ssl verification when a
       verification callback is installed or bypass was requested explicitly

Components
----------
    env.py    Environment flag parsing
    path.py   PathSanitizer
    mtls.py   MTLSContextManager
"""
