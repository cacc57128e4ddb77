"""Domain services: research queue, sync lock, web research, social links, content and audit."""
