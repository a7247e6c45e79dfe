"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos
  (mirror node vía httpx, sandbox en memoria, providers de SDK).
- Permite invertir dependencias: el Core depende de abstracciones y los tests
  sustituyen servicios por stubs.
"""
