# -*- coding: utf-8 -*-
"""
Shell snippets written for the running container
"""

PROFILE_D = '''# This file was automatically generated by the logstash buildpack
export {home_var}="{home}"
'''

PROFILE_D_PATH = '''export PATH="$PATH:${home_var}{bin_dir}"
'''

LOGSTASH_OPTS = '''# This file was automatically generated by the logstash buildpack
export LS_BP_RESERVED_MEMORY="{reserved_memory}"
export LS_BP_HEAP_PERCENTAGE="{heap_percentage}"
export LS_BP_JAVA_OPTS="{java_opts}"
export LS_BP_LOG_LEVEL="{log_level}"
export LS_BP_CMD_ARGS="{cmd_args}"
'''

RUN_SCRIPT = '''#!/bin/bash
# This file was automatically generated by the logstash buildpack
set -e

VCAP_JSON="${VCAP_APPLICATION:-}"
[ -n "$VCAP_JSON" ] || VCAP_JSON='{}'
MEM_LIMIT="$(echo "$VCAP_JSON" | "$JQ_HOME/jq" -r '.limits.mem // empty')"
echo "--> Container memory limit = ${MEM_LIMIT}m"

if [ -n "$LS_BP_JAVA_OPTS" ] || [ -z "$MEM_LIMIT" ] || [ -z "$LS_BP_RESERVED_MEMORY" ] || [ -z "$LS_BP_HEAP_PERCENTAGE" ]
then
    export LS_JAVA_OPTS="$LS_BP_JAVA_OPTS"
    echo "--> Using LS_JAVA_OPTS=\\"${LS_JAVA_OPTS}\\" (user defined)"
else
    HEAP_SIZE=$(( (MEM_LIMIT - LS_BP_RESERVED_MEMORY) / 100 * LS_BP_HEAP_PERCENTAGE ))
    export LS_JAVA_OPTS="-Xmx${HEAP_SIZE}m -Xms${HEAP_SIZE}m"
    echo "--> Using LS_JAVA_OPTS=\\"${LS_JAVA_OPTS}\\" (calculated)"
fi
{curator}
echo "--> Starting Logstash"
exec "$LOGSTASH_HOME/bin/logstash" -f "$HOME/{conf_dir}" --log.level "$LS_BP_LOG_LEVEL" $LS_BP_CMD_ARGS
'''

RUN_CURATOR = '''
echo "--> Starting Ofelia for curator jobs"
"$OFELIA_HOME/ofelia" daemon --config="$HOME/{curator_dir}/ofelia.ini" &
'''

OFELIA_INI = '''; This file was automatically generated by the logstash buildpack
[job-local "curator"]
schedule = {schedule}
command = {command}
'''

RELEASE_YAML = '''---
default_process_types:
  web: {command}
'''


def profile_d(home_var, home, bin_dir=""):
    content = PROFILE_D.format(home_var=home_var, home=home)
    if bin_dir:
        bin_dir = "/" + bin_dir
    return content + PROFILE_D_PATH.format(home_var=home_var, bin_dir=bin_dir)


def quote(value):
    """Escape a value for a double quoted shell string"""
    for c in ['\\', '"', '$', '`']:
        value = value.replace(c, '\\' + c)
    return value


def logstash_opts(config):
    return LOGSTASH_OPTS.format(
        reserved_memory=config.reserved_memory,
        heap_percentage=config.heap_percentage,
        java_opts=quote(config.java_opts),
        log_level=quote(config.log_level),
        cmd_args=quote(config.cmd_args),
    )


def run_script(conf_dir, curator_dir=""):
    curator = ""
    if curator_dir:
        curator = RUN_CURATOR.format(curator_dir=curator_dir)
    return RUN_SCRIPT.replace("{curator}", curator).replace("{conf_dir}", conf_dir)


def ofelia_ini(schedule, command):
    return OFELIA_INI.format(schedule=schedule, command=command)


def release_yaml(command):
    return RELEASE_YAML.format(command=command)
