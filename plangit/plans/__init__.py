from .naming import completed_dir, completed_path, extract_branch_name

__all__ = ["extract_branch_name", "completed_dir", "completed_path"]
