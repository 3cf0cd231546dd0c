"""Config-driven tmux popup menu for apps, submenus, directory browsers and task runners."""
