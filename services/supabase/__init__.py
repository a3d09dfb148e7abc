"""Pacote com integrações segmentadas do Supabase.

Perfis: usado por camadas de serviço internas; as regras de autorização
são aplicadas nos módulos especializados (identity e alunos).
"""

from . import alunos, common, identity

__all__ = ["alunos", "common", "identity"]
