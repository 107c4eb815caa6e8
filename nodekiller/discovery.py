from . import classifier, inspector
from .logs import debug_log
from .models import ListeningProcess


def scan_targets_for(enabled_tags, rules=classifier.RULES):
    """Distinct lsof command names needed to cover `enabled_tags`, in rule order."""
    targets = []
    for rule in rules:
        if rule.tag in enabled_tags and rule.scan_target not in targets:
            targets.append(rule.scan_target)
    return targets


def scan_all(enabled_tags, restrict_to_current_user=True, rules=classifier.RULES,
             discover=None, classify=None):
    """
    Run one full discovery pass and return a fresh list of ListeningProcess.

    Each pid is classified once, by the first scan target that reports it,
    and is kept only if its resolved tag is enabled.
    """
    discover = discover or inspector.discover
    classify = classify or (lambda pid, target: classifier.classify(pid, target, rules))
    enabled_tags = set(enabled_tags)

    results = []
    seen = set()
    for target in scan_targets_for(enabled_tags, rules):
        for proc in discover(target, restrict_to_current_user):
            if proc.process_id in seen:
                continue
            seen.add(proc.process_id)
            tag = classify(proc.process_id, target)
            if tag not in enabled_tags:
                continue
            results.append(ListeningProcess(proc.process_id, proc.owning_user, proc.ports, tag))
    debug_log(f"SCAN: {len(results)} listening processes for {sorted(enabled_tags)}")
    return results
