"""Páginas Gradio (autenticação e cadastro de alunos)."""
