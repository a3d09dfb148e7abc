"""Gestão de Alunos: interface Gradio sobre o cadastro de alunos no Supabase."""
